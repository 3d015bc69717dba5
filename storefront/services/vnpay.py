"""
VNPay request signing.

Both directions sign the same canonical string: every ``vnp_`` parameter
except the signature fields, sorted by key and form-encoded, HMAC-SHA512
keyed by the merchant secret, hex encoded in lowercase.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

PARAM_PREFIX = "vnp_"
SECURE_HASH_FIELD = "vnp_SecureHash"
SECURE_HASH_TYPE_FIELD = "vnp_SecureHashType"
SECURE_HASH_TYPE = "HmacSHA512"
SUCCESS_RESPONSE_CODE = "00"

API_VERSION = "2.1.0"
CREATE_DATE_FORMAT = "%Y%m%d%H%M%S"


def signable_params(params: Mapping[str, Any]) -> Dict[str, str]:
    return {
        key: str(value)
        for key, value in params.items()
        if key.startswith(PARAM_PREFIX) and key not in (SECURE_HASH_FIELD, SECURE_HASH_TYPE_FIELD)
    }


def canonicalize(params: Mapping[str, Any]) -> str:
    return urlencode(sorted(signable_params(params).items()))


def sign(params: Mapping[str, Any], secret_key: str) -> str:
    digest = hmac.new(secret_key.encode("utf-8"), canonicalize(params).encode("utf-8"), hashlib.sha512)
    return digest.hexdigest()


def verify(params: Mapping[str, Any], secret_key: str) -> bool:
    """Check the supplied ``vnp_SecureHash``. An unset secret rejects everything."""
    supplied = params.get(SECURE_HASH_FIELD)
    if not secret_key or not supplied:
        return False
    return hmac.compare_digest(sign(params, secret_key), str(supplied))


def to_minor_units(amount: Any) -> int:
    """VNPay expects the amount multiplied by 100."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class VNPayGateway:
    merchant_code: str
    secret_key: str
    payment_url: str
    locale: str = "vn"

    @property
    def configured(self) -> bool:
        return bool(self.merchant_code and self.secret_key)

    def build_payment_params(
        self,
        order_id: str,
        amount: Any,
        return_url: str,
        client_ip: str,
        created_at: datetime,
        order_info: Optional[str] = None,
    ) -> Dict[str, str]:
        params = {
            "vnp_Version": API_VERSION,
            "vnp_Command": "pay",
            "vnp_TmnCode": self.merchant_code,
            "vnp_Locale": self.locale,
            "vnp_CurrCode": "VND",
            "vnp_TxnRef": order_id,
            "vnp_OrderInfo": order_info or f"Payment for order {order_id}",
            "vnp_OrderType": "other",
            "vnp_Amount": str(to_minor_units(amount)),
            "vnp_ReturnUrl": return_url,
            "vnp_IpAddr": client_ip,
            "vnp_CreateDate": created_at.strftime(CREATE_DATE_FORMAT),
        }
        return dict(sorted(params.items()))

    def build_payment_url(self, params: Mapping[str, Any]) -> str:
        signature = sign(params, self.secret_key)
        query = canonicalize(params)
        trailer = urlencode([(SECURE_HASH_TYPE_FIELD, SECURE_HASH_TYPE), (SECURE_HASH_FIELD, signature)])
        return f"{self.payment_url}?{query}&{trailer}"

    def verify(self, params: Mapping[str, Any]) -> bool:
        return verify(params, self.secret_key)
