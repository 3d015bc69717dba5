"""
Shop availability resolver.

Evaluates, in priority order, the administrator force override, an active
overlay notification, and the weekly operating-hours table, and returns a
single verdict for ``now``. Nothing is persisted; every call re-reads state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models import (
    DAY_NAMES,
    ForceStatus,
    OperatingHours,
    ShopNotification,
    ShopStatusSetting,
)
from storefront.observability import increment_counter, record_event
from storefront.observability.metrics import STATUS_FALLBACKS, STATUS_RESOLUTIONS

logger = logging.getLogger(__name__)

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"
STATUS_SPECIAL_NOTIFICATION = "special_notification"

MSG_OPEN = "store is operating"
MSG_CLOSED = "store is currently closed"
MSG_SPECIAL = "store is temporarily closed"
MSG_NO_HOURS = "no operating-hours configured for today"


@dataclass(frozen=True)
class ShopStatus:
    is_open: bool
    status: str
    message: str
    current_time: str
    title: Optional[str] = None
    next_open_time: Optional[str] = None
    force_status: Optional[bool] = None
    today: Optional[Dict[str, Any]] = None
    next_day: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "isOpen": self.is_open,
            "status": self.status,
            "message": self.message,
            "currentTime": self.current_time,
        }
        if self.title is not None:
            payload["title"] = self.title
        if self.next_open_time is not None:
            payload["nextOpenTime"] = self.next_open_time
        if self.force_status is not None:
            payload["forceStatus"] = self.force_status
        if self.today is not None:
            hours: Dict[str, Any] = {"today": self.today}
            if self.next_day is not None:
                hours["nextDay"] = self.next_day
            payload["operatingHours"] = hours
        return payload


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


def _wall_clock(now: datetime) -> datetime:
    # Stored schedule values carry no zone; compare in the shop's wall clock
    return now.replace(tzinfo=None)


def python_to_shop_weekday(now: datetime) -> int:
    """Map ``datetime.weekday()`` (Monday=0) to the shop numbering (Sunday=0)."""
    return (now.weekday() + 1) % 7


class ShopStatusResolver:
    """Resolve the storefront's open/closed verdict against persisted state."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def resolve(self, now: datetime) -> ShopStatus:
        """
        Return the verdict for ``now``.

        Database failures never propagate: the shop is reported open so a
        storage outage does not block paying customers from checking out.
        """
        try:
            verdict = self._evaluate(now)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Shop status check failed; reporting open")
            increment_counter(STATUS_FALLBACKS)
            record_event("shop_status_fallback", {"at": now.isoformat()})
            verdict = ShopStatus(
                is_open=True,
                status=STATUS_OPEN,
                message=MSG_OPEN,
                current_time=now.isoformat(),
            )
        increment_counter(STATUS_RESOLUTIONS, labels={"status": verdict.status})
        return verdict

    def _evaluate(self, now: datetime) -> ShopStatus:
        current_time = now.isoformat()
        wall = _wall_clock(now)

        forced = self._force_override(current_time)
        if forced is not None:
            return forced

        notification = self._active_notification(wall)
        if notification is not None and notification.show_overlay:
            return ShopStatus(
                is_open=False,
                status=STATUS_SPECIAL_NOTIFICATION,
                message=notification.message or MSG_SPECIAL,
                title=notification.title,
                current_time=current_time,
            )

        weekday = python_to_shop_weekday(wall)
        today = self._hours_for(weekday)
        if today is None:
            return ShopStatus(
                is_open=False,
                status=STATUS_CLOSED,
                message=MSG_NO_HOURS,
                current_time=current_time,
            )

        if not today.is_open:
            next_open = self._next_open_day(weekday)
            return ShopStatus(
                is_open=False,
                status=STATUS_CLOSED,
                message=f"store is closed on {DAY_NAMES[weekday]}",
                next_open_time=(
                    f"{next_open.day_name} at {_hhmm(next_open.open_time)}" if next_open else None
                ),
                current_time=current_time,
                today=today.to_dict(),
            )

        time_of_day = wall.time().replace(microsecond=0)
        if today.open_time <= time_of_day <= today.close_time:
            return ShopStatus(
                is_open=True,
                status=STATUS_OPEN,
                message=f"{MSG_OPEN} (closes at {_hhmm(today.close_time)})",
                current_time=current_time,
                today=today.to_dict(),
            )

        next_open_time = None
        next_day = None
        if time_of_day < today.open_time:
            next_open_time = f"today at {_hhmm(today.open_time)}"
        else:
            tomorrow = self._hours_for((weekday + 1) % 7)
            if tomorrow is not None and tomorrow.is_open:
                next_open_time = f"{tomorrow.day_name} at {_hhmm(tomorrow.open_time)}"
                next_day = tomorrow.to_dict()

        return ShopStatus(
            is_open=False,
            status=STATUS_CLOSED,
            message=MSG_CLOSED,
            next_open_time=next_open_time,
            current_time=current_time,
            today=today.to_dict(),
            next_day=next_day,
        )

    def _force_override(self, current_time: str) -> Optional[ShopStatus]:
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
        forced = settings.get(ShopStatusSetting.FORCE_STATUS_KEY)
        message = settings.get(ShopStatusSetting.FORCE_MESSAGE_KEY) or ""

        if forced == ForceStatus.OPEN.value:
            return ShopStatus(
                is_open=True,
                status=STATUS_OPEN,
                message=message or MSG_OPEN,
                current_time=current_time,
                force_status=True,
            )
        if forced == ForceStatus.CLOSED.value:
            return ShopStatus(
                is_open=False,
                status=STATUS_CLOSED,
                message=message or MSG_CLOSED,
                current_time=current_time,
                force_status=True,
            )
        return None

    def _active_notification(self, wall: datetime) -> Optional[ShopNotification]:
        return (
            self.db.query(ShopNotification)
            .filter(ShopNotification.is_active.is_(True))
            .filter(ShopNotification.start_date <= wall)
            .filter(ShopNotification.end_date >= wall)
            .order_by(ShopNotification.start_date.asc(), ShopNotification.id.asc())
            .first()
        )

    def _hours_for(self, day_of_week: int) -> Optional[OperatingHours]:
        return self.db.query(OperatingHours).filter_by(day_of_week=day_of_week).first()

    def _next_open_day(self, weekday: int) -> Optional[OperatingHours]:
        open_days = {
            row.day_of_week: row
            for row in self.db.query(OperatingHours).filter(OperatingHours.is_open.is_(True)).all()
        }
        for offset in range(1, 7):
            candidate = open_days.get((weekday + offset) % 7)
            if candidate is not None:
                return candidate
        return None
