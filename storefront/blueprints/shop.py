from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from flask import Blueprint, abort, current_app, jsonify, request, session

from storefront import clock
from storefront.database import SessionLocal, get_db
from storefront.services.admission_gate import AdmissionGate
from storefront.services.shop_settings_service import ShopSettingsService, serialize_hours
from storefront.services.shop_status_service import (
    MSG_OPEN,
    STATUS_CLOSED,
    STATUS_OPEN,
    ShopStatus,
    ShopStatusResolver,
)

shop_bp = Blueprint("shop", __name__)
logger = logging.getLogger(__name__)

GATE_EXTENSION_KEY = "shop_status_gate"


def shop_now() -> datetime:
    return clock.shop_now()


def _get_gate() -> AdmissionGate:
    return current_app.extensions[GATE_EXTENSION_KEY]


def _require_admin() -> None:
    if not session.get("is_admin"):
        abort(403)


@shop_bp.route("/api/shop/status", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def shop_status():
    if request.method != "GET":
        return jsonify({
            "isOpen": False,
            "status": STATUS_CLOSED,
            "message": "Method not allowed",
            "currentTime": datetime.now(timezone.utc).isoformat(),
        }), 405

    with _get_gate().slot():
        now = shop_now()
        # Own session so its pooled connection is returned before the slot is
        db = SessionLocal()
        try:
            verdict = ShopStatusResolver(db).resolve(now)
        except Exception:
            # Same fail-open policy as the resolver for anything it did not anticipate
            logger.exception("Shop status check error")
            verdict = ShopStatus(is_open=True, status=STATUS_OPEN, message=MSG_OPEN, current_time=now.isoformat())
        finally:
            db.close()
    return jsonify(verdict.to_dict())


# --- Admin: force status ---

@shop_bp.route("/api/admin/shop/force-status", methods=["GET"])
def get_force_status():
    _require_admin()
    return jsonify(ShopSettingsService(get_db()).get_force_status())


@shop_bp.route("/api/admin/shop/force-status", methods=["POST"])
def set_force_status():
    _require_admin()
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    success, message = ShopSettingsService(get_db()).set_force_status(
        payload.get("status"), payload.get("message")
    )
    if success:
        return jsonify({"success": True, "message": message})
    status_code = 400 if message == "Invalid force status" else 500
    return jsonify({"success": False, "error": message}), status_code


# --- Admin: operating hours ---

@shop_bp.route("/api/admin/shop/operating-hours", methods=["GET"])
def list_operating_hours():
    _require_admin()
    rows = ShopSettingsService(get_db()).list_operating_hours()
    return jsonify({"success": True, "operatingHours": serialize_hours(rows)})


@shop_bp.route("/api/admin/shop/operating-hours", methods=["PUT"])
def update_operating_hours():
    _require_admin()
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    service = ShopSettingsService(get_db())
    success, message = service.update_operating_hours(payload.get("operatingHours"))
    if not success:
        status_code = 500 if message.startswith("Could not") else 400
        return jsonify({"success": False, "message": message}), status_code
    return jsonify({"success": True, "message": message})


# --- Admin: notifications ---

@shop_bp.route("/api/admin/shop/notifications", methods=["GET"])
def list_notifications():
    _require_admin()
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    rows = ShopSettingsService(get_db()).list_notifications(include_inactive=include_inactive)
    return jsonify({"success": True, "notifications": [row.to_dict() for row in rows]})


@shop_bp.route("/api/admin/shop/notifications", methods=["POST"])
def create_notification():
    _require_admin()
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    success, message, notification = ShopSettingsService(get_db()).create_notification(payload)
    if not success:
        status_code = 500 if message.startswith("Could not") else 400
        return jsonify({"success": False, "message": message}), status_code
    return jsonify({"success": True, "message": message, "notification": notification.to_dict()}), 201


@shop_bp.route("/api/admin/shop/notifications/<int:notification_id>", methods=["PUT"])
def update_notification(notification_id: int):
    _require_admin()
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    success, message, notification = ShopSettingsService(get_db()).update_notification(notification_id, payload)
    if not success:
        if message == "Notification not found":
            status_code = 404
        elif message.startswith("Could not"):
            status_code = 500
        else:
            status_code = 400
        return jsonify({"success": False, "message": message}), status_code
    return jsonify({"success": True, "message": message, "notification": notification.to_dict()})


@shop_bp.route("/api/admin/shop/notifications/<int:notification_id>", methods=["DELETE"])
def deactivate_notification(notification_id: int):
    _require_admin()
    success, message = ShopSettingsService(get_db()).deactivate_notification(notification_id)
    if not success:
        status_code = 404 if message == "Notification not found" else 500
        return jsonify({"success": False, "message": message}), status_code
    return jsonify({"success": True, "message": message})
