from __future__ import annotations

from storefront.models import Order, PaymentStatus
from storefront.services.payment_service import PaymentService
from storefront.services.vnpay import VNPayGateway, sign

from conftest import TEST_SECRET


def _service(db_session, secret=TEST_SECRET):
    gateway = VNPayGateway(merchant_code="TESTMERCH", secret_key=secret, payment_url="https://pay.test")
    return PaymentService(db_session, gateway)


def _callback(order_id, response_code="00", secret=TEST_SECRET):
    params = {
        "vnp_TxnRef": order_id,
        "vnp_ResponseCode": response_code,
        "vnp_Amount": "15000000",
        "vnp_TransactionNo": "14012345",
    }
    params["vnp_SecureHashType"] = "HmacSHA512"
    params["vnp_SecureHash"] = sign(params, secret)
    return params


def _status(db_session, order_id):
    db_session.expire_all()
    return db_session.get(Order, order_id).payment_status


def test_successful_callback_marks_order_paid_once(db_session, sample_order):
    service = _service(db_session)

    first = service.apply_callback(_callback(sample_order.id))
    assert first.code == "00"
    assert _status(db_session, sample_order.id) == PaymentStatus.PAID

    second = service.apply_callback(_callback(sample_order.id))
    assert second.code == "00"
    assert _status(db_session, sample_order.id) == PaymentStatus.PAID


def test_tampered_hash_leaves_order_unchanged(db_session, sample_order):
    params = _callback(sample_order.id)
    params["vnp_SecureHash"] = "f" * 128

    result = _service(db_session).apply_callback(params)

    assert result.code == "97"
    assert result.accepted is False
    assert _status(db_session, sample_order.id) == PaymentStatus.PENDING


def test_failed_response_code_marks_order_failed(db_session, sample_order):
    result = _service(db_session).apply_callback(_callback(sample_order.id, response_code="24"))
    assert result.payment_status == PaymentStatus.FAILED
    assert _status(db_session, sample_order.id) == PaymentStatus.FAILED


def test_late_failure_never_overwrites_paid(db_session, sample_order):
    service = _service(db_session)
    service.apply_callback(_callback(sample_order.id))
    service.apply_callback(_callback(sample_order.id, response_code="24"))
    assert _status(db_session, sample_order.id) == PaymentStatus.PAID


def test_unknown_order_is_reported(db_session):
    result = _service(db_session).apply_callback(_callback("NOPE"))
    assert result.code == "01"


def test_create_payment_paths(db_session, sample_order):
    service = _service(db_session)

    assert service.create_payment(None, "127.0.0.1", "http://r")[0] == 400
    assert service.create_payment("NOPE", "127.0.0.1", "http://r")[0] == 404

    status_code, _, url = service.create_payment(sample_order.id, "127.0.0.1", "http://r")
    assert status_code == 200
    assert url.startswith("https://pay.test?")
    assert "vnp_SecureHash=" in url


def test_create_payment_for_paid_order_returns_completion(db_session, sample_order):
    sample_order.payment_status = PaymentStatus.PAID
    db_session.commit()
    status_code, message, url = _service(db_session).create_payment(sample_order.id, "127.0.0.1", "http://r")
    assert status_code == 200
    assert url == f"/checkout/complete?orderId={sample_order.id}"


def test_create_payment_without_secret_is_a_server_error(db_session, sample_order):
    status_code, message, url = _service(db_session, secret="").create_payment(sample_order.id, "127.0.0.1", "http://r")
    assert status_code == 500
    assert url is None


def test_late_failure_reports_stored_paid_status(db_session, sample_order):
    service = _service(db_session)
    service.apply_callback(_callback(sample_order.id))

    late = service.apply_callback(_callback(sample_order.id, response_code="24"))

    assert late.code == "00"
    assert late.payment_status == PaymentStatus.PAID
