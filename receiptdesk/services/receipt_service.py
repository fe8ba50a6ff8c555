import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from receiptdesk.errors import NotFoundError, PersistenceError
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptData:
    receipt_number: str
    issued_at: datetime
    customer_name: str
    customer_email: str
    customer_phone: Optional[str]
    customer_address: Optional[str]
    amount: float
    currency: str
    payment_mode: str
    status: str
    gateway_payment_id: Optional[str] = None
    gateway_order_id: Optional[str] = None


def get_receipt_for_payment(session: Session, payment_id: int) -> Optional[Receipt]:
    return session.exec(select(Receipt).where(Receipt.payment_id == payment_id)).first()


def ensure_receipt(session: Session, payment_id: int) -> Optional[Receipt]:
    """
    Return the payment's receipt, creating it on first call.

    Returns None when the payment does not exist. Two callers racing on the
    same payment converge on one row through the unique payment_id index.
    """
    existing = get_receipt_for_payment(session, payment_id)
    if existing:
        return existing

    payment = session.get(Payment, payment_id)
    if not payment:
        return None

    receipt = Receipt(
        payment_id=payment.id,
        receipt_number=payment.receipt_number,
        generated_at=datetime.utcnow(),
    )
    session.add(receipt)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info(f"Receipt for payment {payment_id} created concurrently, reusing it")
        return get_receipt_for_payment(session, payment_id)
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError("Failed to create receipt", detail=str(e)) from e

    session.refresh(receipt)
    logger.info(f"Receipt {receipt.receipt_number} issued for payment {payment_id}")
    return receipt


def load_receipt_bundle(session: Session, receipt_id: int) -> Tuple[Receipt, Payment, User]:
    receipt = session.get(Receipt, receipt_id)
    if not receipt:
        raise NotFoundError("Receipt not found")
    payment = session.get(Payment, receipt.payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    user = session.get(User, payment.user_id)
    if not user:
        raise NotFoundError("User not found")
    return receipt, payment, user


def _gateway_ids(payment: Payment) -> Tuple[Optional[str], Optional[str]]:
    if payment.gateway == "razorpay":
        return payment.razorpay_payment_id, payment.razorpay_order_id
    if payment.gateway == "cashfree":
        return payment.cashfree_payment_id, payment.cashfree_order_id
    if payment.gateway == "phonepe":
        return payment.phonepe_transaction_id, None
    return payment.utr, None


def build_receipt_data(receipt: Receipt, payment: Payment, user: User) -> ReceiptData:
    gateway_payment_id, gateway_order_id = _gateway_ids(payment)
    return ReceiptData(
        receipt_number=receipt.receipt_number or payment.receipt_number,
        issued_at=receipt.generated_at,
        customer_name=user.name,
        customer_email=user.email,
        customer_phone=user.phone,
        customer_address=user.address,
        amount=payment.amount,
        currency=payment.currency,
        payment_mode=payment.payment_mode,
        status=payment.status,
        gateway_payment_id=gateway_payment_id,
        gateway_order_id=gateway_order_id,
    )
