from __future__ import annotations

import hashlib
import hmac
from datetime import datetime
from urllib.parse import parse_qsl, urlsplit

from storefront.services.vnpay import (
    VNPayGateway,
    canonicalize,
    sign,
    to_minor_units,
    verify,
)

SECRET = "s3cr3t"


def _gateway():
    return VNPayGateway(
        merchant_code="TESTMERCH",
        secret_key=SECRET,
        payment_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html",
    )


def test_canonical_string_sorts_and_filters():
    params = {
        "vnp_TxnRef": "ORD-1",
        "vnp_Amount": "1000",
        "vnp_SecureHash": "abc",
        "vnp_SecureHashType": "HmacSHA512",
        "utm_source": "mail",
    }
    assert canonicalize(params) == "vnp_Amount=1000&vnp_TxnRef=ORD-1"


def test_canonical_string_form_encodes_values():
    params = {"vnp_OrderInfo": "Payment for order 7", "vnp_ReturnUrl": "http://x.test/r?a=1"}
    assert canonicalize(params) == (
        "vnp_OrderInfo=Payment+for+order+7&vnp_ReturnUrl=http%3A%2F%2Fx.test%2Fr%3Fa%3D1"
    )


def test_signature_is_lowercase_hmac_sha512():
    params = {"vnp_Amount": "1000", "vnp_TxnRef": "ORD-1"}
    expected = hmac.new(SECRET.encode(), b"vnp_Amount=1000&vnp_TxnRef=ORD-1", hashlib.sha512).hexdigest()
    assert sign(params, SECRET) == expected
    assert expected == expected.lower()


def test_verify_accepts_signed_and_rejects_tampered():
    params = {"vnp_Amount": "1000", "vnp_TxnRef": "ORD-1", "vnp_ResponseCode": "00"}
    params["vnp_SecureHash"] = sign(params, SECRET)
    assert verify(params, SECRET) is True

    tampered = dict(params, vnp_Amount="1")
    assert verify(tampered, SECRET) is False
    assert verify(dict(params, vnp_SecureHash="0" * 128), SECRET) is False


def test_verify_rejects_missing_secret_or_hash():
    params = {"vnp_Amount": "1000"}
    assert verify(params, SECRET) is False
    params["vnp_SecureHash"] = sign(params, "")
    assert verify(params, "") is False


def test_amount_is_converted_to_minor_units():
    assert to_minor_units(150000) == 15000000
    assert to_minor_units("123.45") == 12345


def test_payment_url_carries_verifiable_signature():
    gateway = _gateway()
    params = gateway.build_payment_params(
        order_id="ORD-42",
        amount=250000,
        return_url="http://shop.test/return",
        client_ip="10.0.0.1",
        created_at=datetime(2024, 1, 1, 8, 5, 9),
    )
    url = gateway.build_payment_url(params)
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query))

    assert url.startswith("https://sandbox.vnpayment.vn/paymentv2/vpcpay.html?")
    assert query["vnp_CreateDate"] == "20240101080509"
    assert query["vnp_Amount"] == "25000000"
    assert query["vnp_TmnCode"] == "TESTMERCH"
    assert query["vnp_SecureHashType"] == "HmacSHA512"
    assert gateway.verify(query) is True


def test_gateway_reports_missing_configuration():
    assert _gateway().configured is True
    assert VNPayGateway(merchant_code="", secret_key=SECRET, payment_url="").configured is False
