import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from receiptdesk.constants.payment_status import (
    OUTCOME_TO_STATUS,
    TERMINAL_STATUSES,
    GatewayOutcome,
    PaymentMode,
    PaymentStatus,
    can_transition,
    normalize_status,
)
from receiptdesk.database import commit_or_raise
from receiptdesk.errors import (
    GatewayError,
    NotFoundError,
    PersistenceError,
    StateTransitionError,
    ValidationError,
)
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.services.gateways import GatewayCallback, GatewayOrder, PaymentGateway
from receiptdesk.services.gateways.manual_gateway import is_valid_utr
from receiptdesk.services.gateways.razorpay_gateway import RazorpayGateway
from receiptdesk.services.receipt_numbers import generate_receipt_number
from receiptdesk.services.retry import call_with_retry

logger = logging.getLogger(__name__)

RECEIPT_NUMBER_ATTEMPTS = 3


@dataclass
class TransitionResult:
    payment: Payment
    transitioned: bool = False

    @property
    def became_paid(self) -> bool:
        return self.transitioned and self.payment.status == PaymentStatus.COMPLETED.value


def get_payment(session: Session, payment_id: int) -> Payment:
    payment = session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def find_payment_by_order_id(session: Session, gateway: PaymentGateway, order_id: str) -> Optional[Payment]:
    column = getattr(Payment, gateway.order_id_field)
    return session.exec(select(Payment).where(column == order_id)).first()


def create_payment(
    session: Session,
    *,
    user: User,
    amount: float,
    payment_mode: PaymentMode,
    gateway: str,
    status: PaymentStatus = PaymentStatus.PENDING,
    utr: Optional[str] = None,
    details: Optional[dict] = None,
) -> Payment:
    """
    Insert the payment row with its receipt number before any gateway call.
    """
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")

    for attempt in range(1, RECEIPT_NUMBER_ATTEMPTS + 1):
        payment = Payment(
            user_id=user.id,
            amount=amount,
            payment_mode=PaymentMode(payment_mode).value,
            gateway=gateway,
            status=normalize_status(status).value,
            receipt_number=generate_receipt_number(session),
            utr=utr,
            details=details,
        )
        session.add(payment)
        try:
            session.commit()
        except IntegrityError as e:
            # lost a race on the receipt number index; draw another one
            session.rollback()
            logger.warning(f"Receipt number collision on attempt {attempt}: {e}")
            continue
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("Failed to create payment record", detail=str(e)) from e

        session.refresh(payment)
        logger.info(
            f"Payment {payment.id} created for user {user.id}: "
            f"{payment.amount} {payment.currency} via {gateway}, receipt {payment.receipt_number}"
        )
        return payment

    raise PersistenceError("Failed to allocate a unique receipt number")


def _set_status(payment: Payment, status: PaymentStatus):
    payment.status = status.value
    payment.updated_at = datetime.utcnow()


def start_checkout(
    session: Session,
    payment: Payment,
    user: User,
    gateway: PaymentGateway,
) -> GatewayOrder:
    """
    Open the provider-side order for a pending payment.

    The provider's correlation id is stored without touching status. A gateway
    failure marks the payment failed and is re-raised for the caller.
    """
    try:
        order = call_with_retry(
            lambda: gateway.create_order(payment=payment, user=user),
            label=f"{gateway.name} create order for payment {payment.id}",
        )
    except GatewayError as e:
        logger.error(f"{gateway.name}: order creation failed for payment {payment.id}: {e.detail}")
        _set_status(payment, PaymentStatus.FAILED)
        session.add(payment)
        commit_or_raise(session, "mark payment failed")
        raise

    if gateway.order_id_field != "receipt_number":
        setattr(payment, gateway.order_id_field, order.order_id)
        payment.updated_at = datetime.utcnow()
        session.add(payment)
        commit_or_raise(session, "store gateway order id")
        session.refresh(payment)

    logger.info(f"{gateway.name}: order {order.order_id} opened for payment {payment.id}")
    return order


def _advance(payment: Payment, target: PaymentStatus, source: str) -> bool:
    """
    Forward-only move. Returns False when the payment is already there or has
    settled in a different terminal state.
    """
    current = normalize_status(payment.status)
    if current == target:
        return False
    if not can_transition(current, target):
        logger.warning(
            f"{source}: ignoring {current.value} -> {target.value} for payment {payment.id}"
        )
        return False
    _set_status(payment, target)
    logger.info(f"{source}: payment {payment.id} {current.value} -> {target.value}")
    return True


def apply_gateway_callback(
    session: Session,
    gateway: PaymentGateway,
    callback: GatewayCallback,
) -> TransitionResult:
    """
    Fold a provider outcome into the payment it belongs to.

    Safe to repeat: a redelivered callback finds the payment already in its
    terminal state and reports transitioned=False.
    """
    payment = find_payment_by_order_id(session, gateway, callback.provider_order_id)
    if not payment:
        logger.error(f"{gateway.name}: payment not found for order {callback.provider_order_id}")
        raise NotFoundError("Payment not found")

    outcome = gateway.map_status(callback.provider_status)
    target = OUTCOME_TO_STATUS[outcome]

    if normalize_status(payment.status) in TERMINAL_STATUSES:
        if outcome != GatewayOutcome.PENDING and normalize_status(payment.status) != target:
            logger.warning(
                f"{gateway.name}: payment {payment.id} already {payment.status}, "
                f"ignoring provider status {callback.provider_status}"
            )
        return TransitionResult(payment=payment, transitioned=False)

    gateway.apply_metadata(payment, callback)
    payment.updated_at = datetime.utcnow()

    transitioned = False
    if outcome != GatewayOutcome.PENDING:
        transitioned = _advance(payment, target, gateway.name)

    session.add(payment)
    commit_or_raise(session, "update payment status")
    session.refresh(payment)
    return TransitionResult(payment=payment, transitioned=transitioned)


def verify_razorpay_payment(
    session: Session,
    *,
    payment_id: int,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
    gateway: RazorpayGateway,
) -> TransitionResult:
    """Checkout callback from the Razorpay widget; a bad signature changes nothing."""
    gateway.verify_checkout(
        order_id=razorpay_order_id,
        payment_id=razorpay_payment_id,
        signature=razorpay_signature,
    )

    payment = get_payment(session, payment_id)
    if payment.razorpay_order_id and payment.razorpay_order_id != razorpay_order_id:
        raise ValidationError("Razorpay order mismatch")
    if not payment.razorpay_order_id:
        payment.razorpay_order_id = razorpay_order_id
        session.add(payment)

    return apply_gateway_callback(
        session,
        gateway,
        GatewayCallback(
            provider_order_id=razorpay_order_id,
            provider_status="captured",
            provider_payment_id=razorpay_payment_id,
            signature=razorpay_signature,
        ),
    )


def _complete_manually(session: Session, payment: Payment, source: str) -> TransitionResult:
    current = normalize_status(payment.status)
    if current == PaymentStatus.COMPLETED:
        return TransitionResult(payment=payment, transitioned=False)
    if current != PaymentStatus.PENDING:
        raise StateTransitionError(f"Payment is {current.value} and cannot be completed")

    _advance(payment, PaymentStatus.COMPLETED, source)
    session.add(payment)
    commit_or_raise(session, "complete payment")
    session.refresh(payment)
    return TransitionResult(payment=payment, transitioned=True)


def submit_utr(session: Session, payment: Payment, utr: str) -> TransitionResult:
    """
    Customer-entered bank reference. The format check is the only gate; a
    malformed UTR leaves the payment untouched.
    """
    utr = (utr or "").strip()
    if not is_valid_utr(utr):
        raise ValidationError("Invalid UTR format")

    if normalize_status(payment.status) == PaymentStatus.COMPLETED and payment.utr == utr:
        return TransitionResult(payment=payment, transitioned=False)

    if normalize_status(payment.status) == PaymentStatus.PENDING:
        payment.utr = utr
    return _complete_manually(session, payment, "utr")


def record_qr_submission(
    session: Session,
    *,
    user: User,
    amount: float,
    utr: str,
    details: Optional[dict] = None,
) -> Payment:
    """A customer reports a QR payment; it waits in pending for admin approval."""
    utr = (utr or "").strip()
    if not is_valid_utr(utr):
        raise ValidationError("Invalid UTR format")
    return create_payment(
        session,
        user=user,
        amount=amount,
        payment_mode=PaymentMode.QR,
        gateway="manual",
        utr=utr,
        details=details,
    )


def approve_manual_payment(session: Session, payment: Payment) -> TransitionResult:
    if payment.gateway != "manual":
        raise ValidationError("Only QR/manual payments can be approved")
    return _complete_manually(session, payment, "admin approval")


def admin_set_status(session: Session, payment: Payment, status: str) -> TransitionResult:
    """Explicit admin override; the only way to reopen a settled payment."""
    try:
        target = normalize_status(status)
    except ValueError as e:
        raise ValidationError(str(e))

    if normalize_status(payment.status) == target:
        return TransitionResult(payment=payment, transitioned=False)

    logger.warning(f"admin override: payment {payment.id} {payment.status} -> {target.value}")
    _set_status(payment, target)
    session.add(payment)
    commit_or_raise(session, "update payment status")
    session.refresh(payment)
    return TransitionResult(payment=payment, transitioned=True)
