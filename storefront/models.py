# storefront/models.py
from enum import Enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Time,
    Boolean,
    Text,
    Enum as SAEnum,
)

# Use a single, shared Base for all models
from storefront.database import Base


DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class ForceStatus(str, Enum):
    AUTO = "auto"
    OPEN = "open"
    CLOSED = "closed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def _utcnow():
    return datetime.now(timezone.utc)


def format_time(value) -> str:
    return value.strftime("%H:%M:%S") if value is not None else None


class OperatingHours(Base):
    __tablename__ = 'shop_operating_hours'
    id = Column(Integer, primary_key=True, autoincrement=True)
    day_of_week = Column(Integer, unique=True, nullable=False)
    open_time = Column(Time)
    close_time = Column(Time)
    is_open = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def to_dict(self):
        return {
            "day_of_week": self.day_of_week,
            "open_time": format_time(self.open_time),
            "close_time": format_time(self.close_time),
            "is_open": bool(self.is_open),
        }


class ShopNotification(Base):
    __tablename__ = 'shop_notifications'
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    message = Column(Text)
    # Wall-clock values, same convention as operating hours
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    show_overlay = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_active": bool(self.is_active),
            "show_overlay": bool(self.show_overlay),
        }


class ShopStatusSetting(Base):
    """Key-value pairs; the resolver reads ``force_status`` and ``force_message``."""

    __tablename__ = 'shop_status_settings'
    FORCE_STATUS_KEY = "force_status"
    FORCE_MESSAGE_KEY = "force_message"

    setting_key = Column(String(100), primary_key=True)
    setting_value = Column(Text)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class Order(Base):
    __tablename__ = 'orders'
    id = Column(String(64), primary_key=True)
    total = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(
        SAEnum(PaymentStatus, name="payment_status", native_enum=False, validate_strings=True,
               values_callable=lambda enum: [member.value for member in enum]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
