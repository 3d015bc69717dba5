from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models import Order, PaymentStatus
from storefront.observability import increment_counter, record_event
from storefront.observability.metrics import VNPAY_CALLBACKS
from storefront.services.vnpay import SUCCESS_RESPONSE_CODE, VNPayGateway

# IPN acknowledgement codes expected by the gateway
RSP_CONFIRMED = "00"
RSP_ORDER_NOT_FOUND = "01"
RSP_CHECKSUM_FAILED = "97"
RSP_UNKNOWN_ERROR = "99"


@dataclass(frozen=True)
class CallbackResult:
    code: str
    message: str
    order_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

    @property
    def accepted(self) -> bool:
        return self.code == RSP_CONFIRMED


def completion_url(order_id: str) -> str:
    return f"/checkout/complete?orderId={order_id}"


class PaymentService:
    """
    Creates VNPay payment redirects and applies gateway callbacks to orders.

    Callbacks may arrive more than once and in any order (IPN and browser
    return race each other); an order that is already ``paid`` is never
    downgraded.
    """

    def __init__(self, db_session: Session, gateway: VNPayGateway) -> None:
        self.db = db_session
        self.gateway = gateway
        self.logger = logging.getLogger(__name__)

    def create_payment(
        self,
        order_id: Optional[str],
        client_ip: str,
        return_url: str,
        now: Optional[datetime] = None,
    ) -> Tuple[int, str, Optional[str]]:
        """
        Returns (http status, message, redirect url or None).
        """
        if not order_id:
            return 400, "Missing orderId", None

        order = self.db.get(Order, str(order_id))
        if order is None:
            return 404, "Order not found", None
        if order.payment_status == PaymentStatus.PAID:
            return 200, "Order already paid", completion_url(order.id)
        if not self.gateway.configured:
            self.logger.error("VNPay merchant code or secret key is not configured")
            return 500, "VNPay config missing", None

        params = self.gateway.build_payment_params(
            order_id=order.id,
            amount=order.total,
            return_url=return_url,
            client_ip=client_ip,
            created_at=now or datetime.now(),
        )
        redirect_url = self.gateway.build_payment_url(params)
        self.logger.info(
            "VNPay payment created",
            extra={"order_id": order.id, "amount": params["vnp_Amount"]},
        )
        return 200, "Payment created", redirect_url

    def apply_callback(self, params: Mapping[str, Any], source: str = "ipn") -> CallbackResult:
        """Verify a gateway callback and record the payment outcome."""
        if not self.gateway.verify(params):
            self.logger.warning(
                "VNPay checksum failed",
                extra={"source": source, "order_id": params.get("vnp_TxnRef")},
            )
            increment_counter(VNPAY_CALLBACKS, labels={"source": source, "outcome": "checksum_failed"})
            return CallbackResult(RSP_CHECKSUM_FAILED, "Checksum failed")

        order_id = str(params.get("vnp_TxnRef") or "")
        if not order_id:
            return CallbackResult(RSP_ORDER_NOT_FOUND, "Order not found")

        new_status = (
            PaymentStatus.PAID
            if str(params.get("vnp_ResponseCode")) == SUCCESS_RESPONSE_CODE
            else PaymentStatus.FAILED
        )

        try:
            order = self.db.get(Order, order_id)
            if order is None:
                return CallbackResult(RSP_ORDER_NOT_FOUND, "Order not found", order_id=order_id)
            updated = (
                self.db.query(Order)
                .filter(Order.id == order_id, Order.payment_status != PaymentStatus.PAID)
                .update(
                    {Order.payment_status: new_status, Order.updated_at: datetime.now(timezone.utc)},
                    synchronize_session=False,
                )
            )
            self.db.commit()
            # Nothing changed means the order was already paid; report what is stored
            stored_status = new_status if updated else order.payment_status
        except SQLAlchemyError:
            self.db.rollback()
            self.logger.exception("Failed to apply VNPay callback for order %s", order_id)
            increment_counter(VNPAY_CALLBACKS, labels={"source": source, "outcome": "error"})
            return CallbackResult(RSP_UNKNOWN_ERROR, "Unknown error", order_id=order_id)

        outcome = new_status.value if updated else "unchanged"
        increment_counter(VNPAY_CALLBACKS, labels={"source": source, "outcome": outcome})
        record_event("vnpay_callback", {"order_id": order_id, "source": source, "outcome": outcome})
        self.logger.info(
            "VNPay callback applied",
            extra={"order_id": order_id, "source": source, "outcome": outcome},
        )
        return CallbackResult(RSP_CONFIRMED, "Confirm success", order_id=order_id, payment_status=stored_status)
