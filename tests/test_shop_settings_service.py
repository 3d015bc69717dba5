from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from storefront import clock
from storefront.services.shop_settings_service import (
    ShopSettingsService,
    parse_datetime,
    parse_flag,
    parse_time,
)

SHOP_ZONE = timezone(timedelta(hours=7))


@pytest.fixture
def shop_zone(monkeypatch):
    monkeypatch.setattr(clock, "SHOP_TZ", SHOP_ZONE)


def test_aware_timestamp_is_converted_to_shop_wall_clock(shop_zone):
    assert parse_datetime("2024-01-01T00:00:00+00:00") == datetime(2024, 1, 1, 7, 0, 0)


def test_naive_timestamp_is_kept_as_wall_clock(shop_zone):
    assert parse_datetime("2024-01-01T00:00:00") == datetime(2024, 1, 1, 0, 0, 0)


def test_flags_reject_strings():
    assert parse_flag(True, "is_open") is True
    assert parse_flag(None, "is_open", default=True) is True
    with pytest.raises(ValueError):
        parse_flag("false", "is_open")
    with pytest.raises(ValueError):
        parse_flag(0, "is_open")


def test_time_parsing_accepts_short_and_long_forms():
    assert parse_time("09:30").strftime("%H:%M:%S") == "09:30:00"
    assert parse_time("21:00:05").strftime("%H:%M:%S") == "21:00:05"
    assert parse_time("") is None


def test_created_notification_window_uses_shop_zone(db_session, shop_zone):
    success, _, notification = ShopSettingsService(db_session).create_notification(
        {
            "title": "Tet holiday",
            "start_date": "2024-02-08T17:00:00+00:00",
            "end_date": "2024-02-14T17:00:00+00:00",
            "show_overlay": True,
        }
    )
    assert success is True
    assert notification.start_date == datetime(2024, 2, 9, 0, 0, 0)
    assert notification.end_date == datetime(2024, 2, 15, 0, 0, 0)


def test_closed_day_string_flag_does_not_open_the_day(db_session):
    success, message = ShopSettingsService(db_session).update_operating_hours(
        [{"day_of_week": 0, "open_time": "09:00", "close_time": "17:00", "is_open": "false"}]
    )
    assert success is False
    assert "is_open" in message
    assert ShopSettingsService(db_session).list_operating_hours() == []
