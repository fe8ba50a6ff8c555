import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from receiptdesk.config import settings
from receiptdesk.errors import NotFoundError, NotificationError, PersistenceError, ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.reminder import Reminder, ReminderChannel, ReminderStatus
from receiptdesk.models.user import User
from receiptdesk.services import email_service, whatsapp_service
from receiptdesk.services.email_retry import send_email_with_retry
from receiptdesk.utils.formatters import format_amount
from receiptdesk.utils.template import render_template

logger = logging.getLogger(__name__)


@dataclass
class ReminderResult:
    success: bool
    message: str
    reminder: Reminder


def send_receipt_notifications(
    *,
    user: User,
    payment: Payment,
    receipt_number: str,
    pdf_bytes: bytes,
) -> None:
    """Mail the receipt PDF to the customer and, separately, to the operator mailbox."""
    attachment = [(f"receipt-{receipt_number}.pdf", pdf_bytes, "application/pdf")]
    ctx = {
        "name": user.name,
        "email": user.email,
        "amount": payment.amount,
        "payment_mode": payment.payment_mode,
        "receipt_number": receipt_number,
        "store_name": settings.STORE_NAME,
    }

    failed = []
    if not send_email_with_retry(
        user.email,
        f"Payment Receipt - {receipt_number}",
        render_template("emails/customer_receipt.html", **ctx),
        attachments=attachment,
    ):
        failed.append(user.email)

    if settings.OPERATOR_EMAIL:
        if not send_email_with_retry(
            settings.OPERATOR_EMAIL,
            f"New payment received - {receipt_number}",
            render_template("emails/operator_payment.html", **ctx),
            attachments=attachment,
        ):
            failed.append(settings.OPERATOR_EMAIL)
    else:
        logger.warning("OPERATOR_EMAIL not set, skipping operator notification")

    if failed:
        raise NotificationError("Failed to send receipt email", detail={"recipients": failed})


def _deliver_reminder(channel: ReminderChannel, user: User, payment: Payment, message: str):
    if channel == ReminderChannel.email:
        email_service.send_email(
            to=user.email,
            subject="Payment Reminder",
            html=render_template(
                "emails/payment_reminder.html",
                name=user.name,
                amount=payment.amount,
                message=message,
                store_name=settings.STORE_NAME,
            ),
        )
    else:
        whatsapp_service.send_whatsapp(
            user.phone,
            f"Hi {user.name},\n\nThis is a payment reminder from {settings.STORE_NAME}. "
            f"Amount due: ₹{format_amount(payment.amount)}\n{message}",
        )


def send_reminder(
    session: Session,
    *,
    payment_id: int,
    channel: ReminderChannel,
    message: str,
) -> ReminderResult:
    """
    Send a payment-due reminder and always log the attempt.

    Missing payment or user fails before anything is sent. A channel failure
    is recorded on the Reminder row and returned with success=False.
    """
    try:
        channel = ReminderChannel(channel)
    except ValueError:
        raise ValidationError(f"Unsupported reminder channel: {channel}")

    payment = session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Invalid payment id")
    user = session.get(User, payment.user_id)
    if not user:
        raise NotFoundError("User not found")

    error: Optional[str] = None
    try:
        _deliver_reminder(channel, user, payment, message)
    except (email_service.EmailDeliveryError, whatsapp_service.MessagingError) as e:
        error = str(e) or f"Failed to send {channel.value} reminder"
        logger.error(f"{channel.value} reminder for payment {payment_id} failed: {error}")
    except Exception as e:
        # rendering or provider parsing broke; the attempt is still logged
        error = f"Failed to send {channel.value} reminder: {e}"
        logger.exception(f"{channel.value} reminder for payment {payment_id} failed unexpectedly")

    reminder = Reminder(
        payment_id=payment_id,
        channel=channel,
        message=message,
        status=ReminderStatus.error if error else ReminderStatus.sent,
        error=error,
    )
    session.add(reminder)
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to log reminder for payment {payment_id}: {e}")
        raise PersistenceError("Failed to log reminder", detail=str(e)) from e
    session.refresh(reminder)

    if error:
        return ReminderResult(success=False, message=error, reminder=reminder)
    return ReminderResult(success=True, message="Reminder sent and logged successfully", reminder=reminder)
