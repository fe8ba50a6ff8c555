import logging

from sqlmodel import Session

from receiptdesk.errors import NotFoundError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.services.notifier import send_receipt_notifications
from receiptdesk.services.pdf_service import render_receipt_pdf
from receiptdesk.services.receipt_service import build_receipt_data, ensure_receipt

logger = logging.getLogger(__name__)


def issue_and_send_receipt(session: Session, payment_id: int):
    """Ensure the receipt exists, render it and mail it. Errors propagate."""
    receipt = ensure_receipt(session, payment_id)
    if receipt is None:
        raise NotFoundError("Payment not found")
    payment = session.get(Payment, payment_id)
    user = session.get(User, payment.user_id)
    if user is None:
        raise NotFoundError("User not found")

    pdf_bytes = render_receipt_pdf(build_receipt_data(receipt, payment, user))
    send_receipt_notifications(
        user=user,
        payment=payment,
        receipt_number=receipt.receipt_number,
        pdf_bytes=pdf_bytes,
    )
    return receipt


def issue_receipt_and_notify(payment_id: int):
    """
    Background follow-up after a payment is completed.

    Runs after the response with its own session. Failures are logged only;
    the admin "resend receipt" action retries them.
    """
    from receiptdesk.database import engine

    with Session(engine) as session:
        try:
            receipt = issue_and_send_receipt(session, payment_id)
            logger.info(f"Receipt {receipt.receipt_number} sent for payment {payment_id}")
        except Exception:
            logger.exception(f"Receipt follow-up failed for payment {payment_id}")
