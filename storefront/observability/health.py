"""Health probes for the database pool and the shop status admission gate."""
from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from storefront.database import engine


def _pool_usage() -> Dict[str, Any]:
    pool = engine.pool
    usage: Dict[str, Any] = {"class": type(pool).__name__}
    # Only queue-style pools count their connections
    if hasattr(pool, "checkedout"):
        usage["checked_out"] = pool.checkedout()
        usage["size"] = pool.size()
    return usage


def check_database_health() -> Dict[str, Any]:
    """Run ``SELECT 1`` and report pool usage alongside the result."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except OperationalError as exc:
        return {"status": "DOWN", "detail": str(exc)}
    return {"status": "UP", "pool": _pool_usage()}


def check_admission_gate(gate: Any) -> Dict[str, Any]:
    """A saturated gate with a queue is reported as BUSY; it still serves, only slower."""
    in_use = gate.held
    waiting = gate.waiting
    status = "BUSY" if in_use >= gate.max_slots and waiting else "UP"
    return {"status": status, "in_use": in_use, "waiting": waiting, "max_slots": gate.max_slots}
