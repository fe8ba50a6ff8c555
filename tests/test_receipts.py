from sqlmodel import select

from receiptdesk.models.receipt import Receipt
from receiptdesk.services.payment_service import admin_set_status
from receiptdesk.services.pdf_service import render_receipt_pdf
from receiptdesk.services.receipt_service import (
    build_receipt_data,
    ensure_receipt,
    load_receipt_bundle,
)
from receiptdesk.services.receipt_tasks import issue_and_send_receipt, issue_receipt_and_notify
from receiptdesk.utils.formatters import format_amount


def test_ensure_receipt_is_idempotent(session, make_payment):
    payment = make_payment()
    first = ensure_receipt(session, payment.id)
    second = ensure_receipt(session, payment.id)

    assert first.id == second.id
    assert first.receipt_number == payment.receipt_number
    rows = session.exec(select(Receipt).where(Receipt.payment_id == payment.id)).all()
    assert len(rows) == 1


def test_ensure_receipt_for_missing_payment(session):
    assert ensure_receipt(session, 9999) is None


def test_pdf_is_deterministic(session, make_payment):
    payment = make_payment(amount=125000.5)
    admin_set_status(session, payment, "completed")
    receipt = ensure_receipt(session, payment.id)
    receipt, payment, user = load_receipt_bundle(session, receipt.id)

    data = build_receipt_data(receipt, payment, user)
    first = render_receipt_pdf(data)
    second = render_receipt_pdf(data)

    assert first.startswith(b"%PDF")
    assert first == second


def test_format_amount_uses_indian_grouping():
    assert format_amount(500) == "500.00"
    assert format_amount(125000.5) == "1,25,000.50"
    assert format_amount(12345678) == "1,23,45,678.00"


def test_issue_and_send_receipt_mails_customer_and_operator(session, make_payment, outbox):
    payment = make_payment()
    admin_set_status(session, payment, "completed")

    receipt = issue_and_send_receipt(session, payment.id)

    assert [m["to"] for m in outbox] == ["asha@example.com", "operator@example.com"]
    filename, pdf_bytes, mime = outbox[0]["attachments"][0]
    assert filename == f"receipt-{receipt.receipt_number}.pdf"
    assert pdf_bytes.startswith(b"%PDF")
    assert mime == "application/pdf"


def test_background_follow_up_swallows_failures(make_payment, session, monkeypatch, caplog):
    from receiptdesk.services import email_service

    def broken(**kwargs):
        raise email_service.EmailDeliveryError("Brevo rejected email (401): invalid api-key")

    monkeypatch.setattr(email_service, "send_email", broken)
    payment = make_payment()
    admin_set_status(session, payment, "completed")

    issue_receipt_and_notify(payment.id)

    session.expire_all()
    assert session.exec(select(Receipt).where(Receipt.payment_id == payment.id)).first()
    assert "Receipt follow-up failed" in caplog.text
