from __future__ import annotations

from urllib.parse import parse_qsl, urlsplit

from storefront.models import Order, PaymentStatus
from storefront.services.vnpay import sign

from conftest import TEST_SECRET


def _signed_query(order_id, response_code="00"):
    params = {
        "vnp_TxnRef": order_id,
        "vnp_ResponseCode": response_code,
        "vnp_Amount": "15000000",
        "vnp_BankCode": "NCB",
    }
    params["vnp_SecureHash"] = sign(params, TEST_SECRET)
    return params


def _status(db_session, order_id):
    db_session.expire_all()
    return db_session.get(Order, order_id).payment_status


def test_create_returns_signed_redirect(client, sample_order):
    resp = client.post("/api/payments/vnpay/create", json={"orderId": sample_order.id})
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["success"] is True
    query = dict(parse_qsl(urlsplit(body["redirectUrl"]).query))
    assert query["vnp_TxnRef"] == sample_order.id
    assert query["vnp_ReturnUrl"] == "http://shop.test/api/payments/vnpay/return"
    assert "vnp_SecureHash" in query


def test_create_validates_input(client, db_session):
    assert client.post("/api/payments/vnpay/create", json={}).status_code == 400
    assert client.post("/api/payments/vnpay/create", json={"orderId": "missing"}).status_code == 404


def test_ipn_tampered_hash_is_rejected(client, db_session, sample_order):
    query = _signed_query(sample_order.id)
    query["vnp_SecureHash"] = "0" * 128

    resp = client.get("/api/payments/vnpay/ipn", query_string=query)

    assert resp.status_code == 200
    assert resp.get_json() == {"RspCode": "97", "Message": "Checksum failed"}
    assert _status(db_session, sample_order.id) == PaymentStatus.PENDING


def test_ipn_success_is_idempotent(client, db_session, sample_order):
    query = _signed_query(sample_order.id)

    first = client.get("/api/payments/vnpay/ipn", query_string=query)
    assert first.get_json()["RspCode"] == "00"
    assert _status(db_session, sample_order.id) == PaymentStatus.PAID

    second = client.get("/api/payments/vnpay/ipn", query_string=query)
    assert second.get_json()["RspCode"] == "00"
    assert _status(db_session, sample_order.id) == PaymentStatus.PAID


def test_ipn_rejects_post(client):
    resp = client.post("/api/payments/vnpay/ipn")
    assert resp.status_code == 405
    assert resp.get_json()["RspCode"] == "97"


def test_return_redirects_to_completion(client, db_session, sample_order):
    resp = client.get("/api/payments/vnpay/return", query_string=_signed_query(sample_order.id, "24"))

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith(f"/checkout/complete?orderId={sample_order.id}")
    assert _status(db_session, sample_order.id) == PaymentStatus.FAILED


def test_return_with_bad_checksum(client, sample_order):
    query = _signed_query(sample_order.id)
    query["vnp_Amount"] = "1"
    resp = client.get("/api/payments/vnpay/return", query_string=query)
    assert resp.status_code == 400


def test_return_for_unknown_order(client, db_session):
    resp = client.get("/api/payments/vnpay/return", query_string=_signed_query("NO-SUCH-ORDER"))
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False
