"""Administrative reads and writes behind the shop availability resolver."""
from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.clock import to_shop_wall_clock
from storefront.models import ForceStatus, OperatingHours, ShopNotification, ShopStatusSetting

logger = logging.getLogger(__name__)


def parse_time(value: Any) -> Optional[time]:
    """Accept ``HH:MM`` or ``HH:MM:SS``; return None for blanks, raise ValueError otherwise."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time value: {value!r}")


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into shop wall-clock time (the stored convention)."""
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).strip())
    return to_shop_wall_clock(value)


def parse_flag(value: Any, field: str, default: bool = False) -> bool:
    """JSON booleans only; strings such as "false" are rejected rather than coerced."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"{field} must be true or false")
    return value


class ShopSettingsService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # Force status

    def get_force_status(self) -> Dict[str, str]:
        rows = (
            self.db.query(ShopStatusSetting)
            .filter(
                ShopStatusSetting.setting_key.in_(
                    [ShopStatusSetting.FORCE_STATUS_KEY, ShopStatusSetting.FORCE_MESSAGE_KEY]
                )
            )
            .all()
        )
        settings = {row.setting_key: row.setting_value for row in rows}
        return {
            "status": settings.get(ShopStatusSetting.FORCE_STATUS_KEY) or ForceStatus.AUTO.value,
            "message": settings.get(ShopStatusSetting.FORCE_MESSAGE_KEY) or "",
        }

    def set_force_status(self, status: Any, message: Optional[str] = None) -> Tuple[bool, str]:
        try:
            forced = ForceStatus(status)
        except ValueError:
            return False, "Invalid force status"

        try:
            self._upsert(ShopStatusSetting.FORCE_STATUS_KEY, forced.value)
            self._upsert(ShopStatusSetting.FORCE_MESSAGE_KEY, message or "")
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to update force status")
            return False, "Could not update force status"

        logger.info("Force status set to %s", forced.value)
        return True, "Force status updated"

    def _upsert(self, key: str, value: str) -> None:
        setting = self.db.get(ShopStatusSetting, key)
        if setting is None:
            self.db.add(ShopStatusSetting(setting_key=key, setting_value=value))
        else:
            setting.setting_value = value

    # Operating hours

    def list_operating_hours(self) -> List[OperatingHours]:
        return self.db.query(OperatingHours).order_by(OperatingHours.day_of_week).all()

    def update_operating_hours(self, entries: Any) -> Tuple[bool, str]:
        """Validate every entry first, then apply them in one transaction."""
        if not isinstance(entries, list):
            return False, "Invalid data format"

        parsed: List[Tuple[int, Optional[time], Optional[time], bool]] = []
        for entry in entries:
            if not isinstance(entry, dict):
                return False, "Invalid data format"
            day = entry.get("day_of_week")
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                return False, "Invalid day of week"
            try:
                is_open = parse_flag(entry.get("is_open"), "is_open")
                open_time = parse_time(entry.get("open_time"))
                close_time = parse_time(entry.get("close_time"))
            except ValueError as exc:
                return False, str(exc)
            if is_open and (open_time is None or close_time is None):
                return False, "Open and close times are required for an open day"
            if is_open and open_time >= close_time:
                return False, "Close time must be after open time"
            parsed.append((day, open_time, close_time, is_open))

        try:
            for day, open_time, close_time, is_open in parsed:
                row = self.db.query(OperatingHours).filter_by(day_of_week=day).first()
                if row is None:
                    row = OperatingHours(day_of_week=day)
                    self.db.add(row)
                row.open_time = open_time
                row.close_time = close_time
                row.is_open = is_open
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to update operating hours")
            return False, "Could not update operating hours"

        return True, "Operating hours updated"

    def ensure_default_operating_hours(self, open_time: str, close_time: str) -> int:
        """Insert a row for every weekday that has none. Returns the number created."""
        existing = {row.day_of_week for row in self.db.query(OperatingHours.day_of_week).all()}
        missing = [day for day in range(7) if day not in existing]
        for day in missing:
            self.db.add(
                OperatingHours(
                    day_of_week=day,
                    open_time=parse_time(open_time),
                    close_time=parse_time(close_time),
                    is_open=True,
                )
            )
        if missing:
            self.db.commit()
            logger.info("Seeded default operating hours for %d day(s)", len(missing))
        return len(missing)

    # Notifications

    def list_notifications(self, include_inactive: bool = False) -> List[ShopNotification]:
        query = self.db.query(ShopNotification)
        if not include_inactive:
            query = query.filter(ShopNotification.is_active.is_(True))
        return query.order_by(ShopNotification.start_date.asc()).all()

    def create_notification(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[ShopNotification]]:
        error, fields = self._notification_fields(payload)
        if error:
            return False, error, None

        notification = ShopNotification(is_active=True, **fields)
        try:
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to create shop notification")
            return False, "Could not create notification", None

        logger.info("Created shop notification %s", notification.id)
        return True, "Notification created", notification

    def update_notification(
        self, notification_id: int, payload: Dict[str, Any]
    ) -> Tuple[bool, str, Optional[ShopNotification]]:
        """Update the fields present in ``payload``; absent fields keep their stored value."""
        notification = self.db.get(ShopNotification, notification_id)
        if notification is None:
            return False, "Notification not found", None

        error, fields = self._notification_fields(payload, current=notification)
        if error:
            return False, error, None
        try:
            is_active = parse_flag(payload.get("is_active"), "is_active", default=notification.is_active)
        except ValueError as exc:
            return False, str(exc), None

        try:
            for name, value in fields.items():
                setattr(notification, name, value)
            notification.is_active = is_active
            self.db.commit()
            self.db.refresh(notification)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to update shop notification %s", notification_id)
            return False, "Could not update notification", None

        logger.info("Updated shop notification %s", notification_id)
        return True, "Notification updated", notification

    def _notification_fields(
        self, payload: Dict[str, Any], current: Optional[ShopNotification] = None
    ) -> Tuple[Optional[str], Dict[str, Any]]:
        """Validate a create/update payload. Returns (error message or None, column values)."""

        def _pick(name: str) -> Any:
            if name in payload or current is None:
                return payload.get(name)
            return getattr(current, name)

        title = (_pick("title") or "").strip()
        if not title:
            return "Title is required", {}
        try:
            start_date = parse_datetime(_pick("start_date"))
            end_date = parse_datetime(_pick("end_date"))
        except (TypeError, ValueError):
            return "start_date and end_date must be ISO-8601 timestamps", {}
        if start_date >= end_date:
            return "Start date must be before end date", {}
        try:
            show_overlay = parse_flag(_pick("show_overlay"), "show_overlay")
        except ValueError as exc:
            return str(exc), {}

        return None, {
            "title": title,
            "message": _pick("message") or "",
            "start_date": start_date,
            "end_date": end_date,
            "show_overlay": show_overlay,
        }

    def deactivate_notification(self, notification_id: int) -> Tuple[bool, str]:
        notification = self.db.get(ShopNotification, notification_id)
        if notification is None:
            return False, "Notification not found"
        try:
            notification.is_active = False
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to deactivate shop notification %s", notification_id)
            return False, "Could not deactivate notification"
        return True, "Notification deactivated"


def serialize_hours(rows: Iterable[OperatingHours]) -> List[Dict[str, Any]]:
    return [row.to_dict() for row in rows]
