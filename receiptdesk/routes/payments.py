import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlmodel import Session, select

from receiptdesk.constants.payment_status import PaymentStatus
from receiptdesk.database import get_session
from receiptdesk.errors import GatewayError, NotFoundError, ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.schemas.payment_schemas import (
    CreateOrderRequest,
    QrPaymentRequest,
    RazorpayVerifyRequest,
    UtrSubmitRequest,
)
from receiptdesk.services import payment_service
from receiptdesk.services.gateways import get_gateway, resolve_gateway_name
from receiptdesk.services.receipt_service import ensure_receipt, get_receipt_for_payment
from receiptdesk.services.receipt_tasks import issue_receipt_and_notify
from receiptdesk.services.user_directory import find_or_create_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _receipt_payload(session: Session, payment: Payment):
    receipt = get_receipt_for_payment(session, payment.id)
    return receipt.model_dump() if receipt else None


def _schedule_receipt(background_tasks: BackgroundTasks, result: payment_service.TransitionResult):
    if result.became_paid:
        background_tasks.add_task(issue_receipt_and_notify, result.payment.id)


@router.post("/create-order")
def create_order(
    payload: CreateOrderRequest,
    session: Session = Depends(get_session),
):
    """Create the pending payment and open the order with its gateway."""
    gateway_name = resolve_gateway_name(payload.payment_mode, payload.gateway)
    gateway = get_gateway(gateway_name)

    user = find_or_create_user(
        session,
        email=payload.email,
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
    )

    payment = payment_service.create_payment(
        session,
        user=user,
        amount=payload.amount,
        payment_mode=payload.payment_mode,
        gateway=gateway_name,
    )

    try:
        order = payment_service.start_checkout(session, payment, user, gateway)
    except GatewayError as e:
        raise GatewayError(
            f"Failed to create {gateway_name} order",
            detail={
                "payment_id": payment.id,
                "receipt_number": payment.receipt_number,
                "reason": e.detail or e.message,
                "retryable": True,
            },
        ) from e

    return {
        "success": True,
        "message": "Order created",
        "payment_id": payment.id,
        "receipt_number": payment.receipt_number,
        "status": payment.status,
        "gateway": gateway_name,
        "order_id": order.order_id,
        "payment_session_id": order.session_token,
        "payment_link": order.payment_link,
        "amount": payment.amount,
        "currency": payment.currency,
        "user": {"id": user.id, "name": user.name, "email": user.email, "phone": user.phone},
        **order.extra,
    }


@router.post("/verify")
def verify_payment(
    payload: RazorpayVerifyRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    """Razorpay checkout callback."""
    result = payment_service.verify_razorpay_payment(
        session,
        payment_id=payload.payment_id,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
        gateway=get_gateway("razorpay"),
    )
    _schedule_receipt(background_tasks, result)

    receipt = None
    if result.payment.status == PaymentStatus.COMPLETED.value:
        receipt = ensure_receipt(session, result.payment.id)
        # the receipt commit expires the payment
        session.refresh(result.payment)

    return {
        "success": True,
        "message": "Payment verified successfully",
        "payment": result.payment.model_dump(),
        "receipt": receipt.model_dump() if receipt else None,
    }


@router.post("/verify-utr")
def verify_utr(
    payload: UtrSubmitRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    payment = payment_service.get_payment(session, payload.payment_id)
    result = payment_service.submit_utr(session, payment, payload.utr)
    _schedule_receipt(background_tasks, result)

    receipt = ensure_receipt(session, payment.id)
    session.refresh(result.payment)
    return {
        "success": True,
        "message": "UTR payment verified successfully",
        "payment": result.payment.model_dump(),
        "receipt": receipt.model_dump() if receipt else None,
    }


@router.post("/qr-payment")
def submit_qr_payment(
    payload: QrPaymentRequest,
    session: Session = Depends(get_session),
):
    """Customer reports a QR transfer; an admin approves it later."""
    user = find_or_create_user(
        session,
        email=payload.email,
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
    )
    payment = payment_service.record_qr_submission(
        session,
        user=user,
        amount=payload.amount,
        utr=payload.utr,
        details=payload.details,
    )
    return {
        "success": True,
        "message": "QR payment submitted for approval",
        "payment": payment.model_dump(),
    }


@router.get("/details")
def payment_details(
    order_id: Optional[str] = None,
    payment_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    if not order_id and not payment_id:
        raise ValidationError("Missing order_id or payment_id parameter")

    if payment_id:
        payment = session.get(Payment, payment_id)
    else:
        payment = session.exec(
            select(Payment).where(
                (Payment.cashfree_order_id == order_id)
                | (Payment.razorpay_order_id == order_id)
                | (Payment.receipt_number == order_id)
            )
        ).first()

    if not payment:
        raise NotFoundError("Payment not found")

    user = session.get(User, payment.user_id)
    return {
        "success": True,
        "payment": payment.model_dump(),
        "user": user.model_dump() if user else None,
        "receipt": _receipt_payload(session, payment),
    }
