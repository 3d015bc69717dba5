# tests/conftest.py
"""
Pytest configuration and shared fixtures.

The application reads its configuration at import time, so the test database
and gateway credentials are put in the environment before anything from
``storefront`` is imported.
"""

import os
import sys
import tempfile
from datetime import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

_TEST_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("VNPAY_MERCHANT_CODE", "TESTMERCH")
os.environ.setdefault("VNPAY_SECRET_KEY", "test-secret-key")
os.environ.setdefault("VNPAY_RETURN_URL", "http://shop.test/api/payments/vnpay/return")
os.environ.setdefault("STRUCTURED_LOGS_ENABLED", "false")

from storefront.database import Base, engine, SessionLocal  # noqa: E402
from storefront.models import (  # noqa: E402
    OperatingHours,
    Order,
    PaymentStatus,
    ShopNotification,
    ShopStatusSetting,
)

TEST_SECRET = os.environ["VNPAY_SECRET_KEY"]


def _clear_tables(session):
    for model in (ShopNotification, ShopStatusSetting, OperatingHours, Order):
        session.query(model).delete(synchronize_session=False)
    session.commit()


@pytest.fixture
def db_session():
    """Fresh session over empty shop tables."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    _clear_tables(session)
    try:
        yield session
    finally:
        session.rollback()
        _clear_tables(session)
        session.close()


@pytest.fixture
def app():
    from storefront.main import app as flask_app

    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app, db_session):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    with client.session_transaction() as sess:
        sess["user_id"] = 1
        sess["is_admin"] = True
    return client


def add_hours(session, day, open_at="09:00:00", close_at="21:00:00", is_open=True):
    row = OperatingHours(
        day_of_week=day,
        open_time=time.fromisoformat(open_at) if open_at else None,
        close_time=time.fromisoformat(close_at) if close_at else None,
        is_open=is_open,
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def seed_week(db_session):
    """Seed all seven days, open 09:00-21:00 unless listed in ``closed_days``."""

    def _seed(closed_days=(), open_at="09:00:00", close_at="21:00:00"):
        for day in range(7):
            add_hours(db_session, day, open_at, close_at, is_open=day not in closed_days)

    return _seed


@pytest.fixture
def sample_order(db_session):
    order = Order(id="ORD-1001", total=150000, payment_status=PaymentStatus.PENDING)
    db_session.add(order)
    db_session.commit()
    return order
