from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, redirect, request

from storefront.database import get_db
from storefront.services.payment_service import (
    RSP_CHECKSUM_FAILED,
    RSP_ORDER_NOT_FOUND,
    RSP_UNKNOWN_ERROR,
    PaymentService,
    completion_url,
)
from storefront.services.vnpay import VNPayGateway

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments/vnpay")
logger = logging.getLogger(__name__)


def _gateway() -> VNPayGateway:
    config = current_app.config
    return VNPayGateway(
        merchant_code=config.get("VNPAY_MERCHANT_CODE", ""),
        secret_key=config.get("VNPAY_SECRET_KEY", ""),
        payment_url=config.get("VNPAY_URL", ""),
        locale=config.get("VNPAY_LOCALE", "vn"),
    )


def _get_payment_service() -> PaymentService:
    return PaymentService(get_db(), _gateway())


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "127.0.0.1"


@payments_bp.route("/create", methods=["POST"])
def create_payment():
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    return_url = current_app.config.get("VNPAY_RETURN_URL") or f"{request.host_url.rstrip('/')}/api/payments/vnpay/return"
    try:
        status_code, message, redirect_url = _get_payment_service().create_payment(
            payload.get("orderId"), client_ip=_client_ip(), return_url=return_url
        )
    except Exception:
        logger.exception("VNPay create error")
        return jsonify({"success": False, "message": "Internal error"}), 500

    if status_code != 200:
        return jsonify({"success": False, "message": message}), status_code
    return jsonify({"success": True, "message": message, "redirectUrl": redirect_url})


@payments_bp.route("/ipn", methods=["GET", "POST"])
def ipn():
    if request.method != "GET":
        return jsonify({"RspCode": RSP_CHECKSUM_FAILED, "Message": "Method not allowed"}), 405
    try:
        result = _get_payment_service().apply_callback(request.args.to_dict(), source="ipn")
    except Exception:
        logger.exception("VNPay IPN error")
        return jsonify({"RspCode": RSP_UNKNOWN_ERROR, "Message": "Unknown error"})
    # The gateway reads RspCode; the HTTP status stays 200
    return jsonify({"RspCode": result.code, "Message": result.message})


@payments_bp.route("/return", methods=["GET"])
def payment_return():
    try:
        result = _get_payment_service().apply_callback(request.args.to_dict(), source="return")
    except Exception:
        logger.exception("VNPay return error")
        return jsonify({"success": False, "message": "Internal error"}), 500

    if result.code == RSP_CHECKSUM_FAILED:
        return jsonify({"success": False, "message": "Checksum invalid"}), 400
    if result.code == RSP_ORDER_NOT_FOUND:
        return jsonify({"success": False, "message": "Order not found"}), 404
    if not result.accepted:
        return jsonify({"success": False, "message": "Internal error"}), 500
    return redirect(completion_url(result.order_id))
