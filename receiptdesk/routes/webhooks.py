import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlmodel import Session

from receiptdesk.database import get_session
from receiptdesk.services.gateways import get_gateway
from receiptdesk.services.payment_service import apply_gateway_callback
from receiptdesk.services.receipt_tasks import issue_receipt_and_notify

logger = logging.getLogger(__name__)

router = APIRouter()


async def raw_body(request: Request) -> bytes:
    # signatures are computed over the exact bytes received
    return await request.body()


def _handle_callback(
    gateway_name: str,
    body: bytes,
    request: Request,
    session: Session,
    background_tasks: BackgroundTasks,
):
    gateway = get_gateway(gateway_name)
    callback = gateway.parse_callback(body, request.headers)
    logger.info(
        f"{gateway_name} callback for order {callback.provider_order_id}: {callback.provider_status}"
    )

    result = apply_gateway_callback(session, gateway, callback)
    if result.became_paid:
        background_tasks.add_task(issue_receipt_and_notify, result.payment.id)

    return {
        "success": True,
        "message": "Webhook processed successfully",
        "payment_id": result.payment.id,
        "status": result.payment.status,
        "transitioned": result.transitioned,
    }


@router.post("/webhook/cashfree")
def cashfree_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    body: bytes = Depends(raw_body),
    session: Session = Depends(get_session),
):
    return _handle_callback("cashfree", body, request, session, background_tasks)


@router.post("/webhook/razorpay")
def razorpay_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    body: bytes = Depends(raw_body),
    session: Session = Depends(get_session),
):
    return _handle_callback("razorpay", body, request, session, background_tasks)


@router.post("/payment/phonepe-callback")
def phonepe_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    body: bytes = Depends(raw_body),
    session: Session = Depends(get_session),
):
    return _handle_callback("phonepe", body, request, session, background_tasks)
