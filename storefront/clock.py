"""Shop wall clock: server local time unless SHOP_TIMEZONE names an IANA zone."""
from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from storefront.config import Config

logger = logging.getLogger(__name__)

try:
    SHOP_TZ: Optional[tzinfo] = ZoneInfo(Config.SHOP_TIMEZONE) if Config.SHOP_TIMEZONE else None
except ZoneInfoNotFoundError:
    logger.warning("Unknown SHOP_TIMEZONE %r; using server local time", Config.SHOP_TIMEZONE)
    SHOP_TZ = None


def shop_now() -> datetime:
    if SHOP_TZ is not None:
        return datetime.now(SHOP_TZ)
    return datetime.now().astimezone()


def to_shop_wall_clock(value: datetime) -> datetime:
    """
    Naive values are already wall-clock time and pass through. Aware values
    are converted into the shop zone before the offset is dropped.
    """
    if value.tzinfo is None:
        return value
    localized = value.astimezone(SHOP_TZ) if SHOP_TZ is not None else value.astimezone()
    return localized.replace(tzinfo=None)
