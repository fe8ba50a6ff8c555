import re

import pytest
import requests
from sqlmodel import select

from receiptdesk.constants.payment_status import PaymentMode, PaymentStatus
from receiptdesk.errors import GatewayError, StateTransitionError, ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.services import payment_service
from receiptdesk.services.gateways import GatewayCallback, get_gateway
from receiptdesk.services.receipt_service import ensure_receipt

from conftest import FakeResponse


def _cashfree_callback(payment, status):
    return GatewayCallback(
        provider_order_id=payment.cashfree_order_id,
        provider_status=status,
        provider_payment_id="cf_pay_1",
    )


@pytest.fixture
def cashfree_payment(session, make_payment):
    payment = make_payment()
    payment.cashfree_order_id = f"order_{payment.receipt_number}"
    session.add(payment)
    session.commit()
    session.refresh(payment)
    return payment


def test_upi_payment_scenario(session, make_payment):
    payment = make_payment(amount=500, payment_mode=PaymentMode.UPI, gateway="cashfree")
    assert payment.status == "pending"
    assert re.match(r"^AKRX-\d{8}-\d{4}$", payment.receipt_number)

    payment.cashfree_order_id = f"order_{payment.receipt_number}"
    session.add(payment)
    session.commit()

    result = payment_service.apply_gateway_callback(
        session, get_gateway("cashfree"), _cashfree_callback(payment, "success")
    )
    assert result.transitioned
    assert result.became_paid
    assert result.payment.status == PaymentStatus.COMPLETED.value

    first = ensure_receipt(session, payment.id)
    second = ensure_receipt(session, payment.id)
    assert first.id == second.id
    assert first.receipt_number == payment.receipt_number


def test_create_payment_rejects_non_positive_amount(session, customer):
    with pytest.raises(ValidationError):
        payment_service.create_payment(
            session, user=customer, amount=0, payment_mode=PaymentMode.UPI, gateway="cashfree"
        )
    assert session.exec(select(Payment)).all() == []


def test_repeated_callback_transitions_once(session, cashfree_payment):
    gateway = get_gateway("cashfree")
    first = payment_service.apply_gateway_callback(
        session, gateway, _cashfree_callback(cashfree_payment, "SUCCESS")
    )
    second = payment_service.apply_gateway_callback(
        session, gateway, _cashfree_callback(cashfree_payment, "SUCCESS")
    )
    assert first.transitioned is True
    assert second.transitioned is False
    assert second.payment.status == "completed"
    assert second.payment.cashfree_payment_id == "cf_pay_1"


@pytest.mark.parametrize("terminal", ["FAILED", "CANCELLED"])
def test_failed_or_cancelled_never_completes_via_callback(session, cashfree_payment, terminal):
    gateway = get_gateway("cashfree")
    payment_service.apply_gateway_callback(
        session, gateway, _cashfree_callback(cashfree_payment, terminal)
    )
    result = payment_service.apply_gateway_callback(
        session, gateway, _cashfree_callback(cashfree_payment, "SUCCESS")
    )
    assert result.transitioned is False
    assert result.payment.status == terminal.lower()


def test_unknown_provider_status_keeps_pending(session, cashfree_payment):
    result = payment_service.apply_gateway_callback(
        session, get_gateway("cashfree"), _cashfree_callback(cashfree_payment, "ACTIVE")
    )
    assert result.transitioned is False
    assert result.payment.status == "pending"
    assert result.payment.cashfree_payment_status == "ACTIVE"


def test_admin_override_reopens_settled_payment(session, cashfree_payment):
    payment_service.apply_gateway_callback(
        session, get_gateway("cashfree"), _cashfree_callback(cashfree_payment, "FAILED")
    )
    result = payment_service.admin_set_status(session, cashfree_payment, "success")
    assert result.became_paid
    assert result.payment.status == "completed"

    with pytest.raises(ValidationError):
        payment_service.admin_set_status(session, cashfree_payment, "refunded")


def test_valid_utr_completes_payment(session, make_payment):
    payment = make_payment(payment_mode=PaymentMode.QR, gateway="manual")
    result = payment_service.submit_utr(session, payment, "ABC123XYZ99")
    assert result.became_paid
    assert result.payment.utr == "ABC123XYZ99"

    again = payment_service.submit_utr(session, payment, "ABC123XYZ99")
    assert again.transitioned is False


def test_malformed_utr_leaves_payment_pending(session, make_payment):
    payment = make_payment(payment_mode=PaymentMode.QR, gateway="manual")
    with pytest.raises(ValidationError):
        payment_service.submit_utr(session, payment, "abc!23")

    session.refresh(payment)
    assert payment.status == "pending"
    assert payment.utr is None


def test_utr_on_failed_payment_is_rejected(session, make_payment):
    payment = make_payment(payment_mode=PaymentMode.QR, gateway="manual")
    payment_service.admin_set_status(session, payment, "failed")
    with pytest.raises(StateTransitionError):
        payment_service.submit_utr(session, payment, "ABC123XYZ99")


def test_qr_submission_waits_for_approval(session, customer):
    payment = payment_service.record_qr_submission(
        session, user=customer, amount=250, utr="UTR1234567890", details={"bank": "HDFC"}
    )
    assert payment.status == "pending"
    assert payment.payment_mode == "qr"
    assert payment.details == {"bank": "HDFC"}

    result = payment_service.approve_manual_payment(session, payment)
    assert result.became_paid


def test_approve_rejects_gateway_payments(session, cashfree_payment):
    with pytest.raises(ValidationError):
        payment_service.approve_manual_payment(session, cashfree_payment)


def test_start_checkout_stores_order_id(session, customer, make_payment, cashfree_api):
    payment = make_payment()
    order = payment_service.start_checkout(session, payment, customer, get_gateway("cashfree"))

    assert order.order_id == f"order_{payment.receipt_number}"
    assert order.session_token == "session_test_123"
    assert payment.cashfree_order_id == order.order_id
    assert payment.status == "pending"
    assert cashfree_api[0]["headers"]["x-api-version"] == "2023-08-01"


def test_gateway_decline_marks_payment_failed(session, customer, make_payment, monkeypatch):
    calls = []

    def declined(*args, **kwargs):
        calls.append(1)
        return FakeResponse(400, text='{"message": "order_amount invalid"}')

    monkeypatch.setattr(requests, "post", declined)
    payment = make_payment()

    with pytest.raises(GatewayError):
        payment_service.start_checkout(session, payment, customer, get_gateway("cashfree"))

    session.refresh(payment)
    assert payment.status == "failed"
    assert len(calls) == 1


def test_gateway_timeouts_are_retried(session, customer, make_payment, monkeypatch):
    attempts = []

    def flaky(url, json=None, **kwargs):
        attempts.append(url)
        if len(attempts) < 3:
            raise requests.exceptions.Timeout("read timed out")
        return FakeResponse(200, {"order_id": json["order_id"], "payment_session_id": "s"})

    monkeypatch.setattr(requests, "post", flaky)
    payment = make_payment()

    order = payment_service.start_checkout(session, payment, customer, get_gateway("cashfree"))
    assert len(attempts) == 3
    assert order.session_token == "s"


def test_callback_for_unknown_order_is_not_found(session):
    from receiptdesk.errors import NotFoundError

    with pytest.raises(NotFoundError):
        payment_service.apply_gateway_callback(
            session,
            get_gateway("cashfree"),
            GatewayCallback(provider_order_id="order_missing", provider_status="SUCCESS"),
        )
    assert session.exec(select(Receipt)).all() == []
