from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlmodel import Session

from receiptdesk.constants.payment_status import PaymentStatus
from receiptdesk.database import get_session
from receiptdesk.errors import NotFoundError, ValidationError
from receiptdesk.services.notifier import send_receipt_notifications
from receiptdesk.services.payment_service import get_payment
from receiptdesk.services.pdf_service import render_receipt_pdf
from receiptdesk.services.receipt_service import (
    build_receipt_data,
    ensure_receipt,
    load_receipt_bundle,
)

router = APIRouter()


def pdf_response(pdf_bytes: bytes, receipt_number: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt-{receipt_number}.pdf"'},
    )


def _ensure_for_completed(session: Session, payment_id: int):
    payment = get_payment(session, payment_id)
    if payment.status != PaymentStatus.COMPLETED.value:
        raise ValidationError(f"Payment is {payment.status}; receipts are issued for completed payments")
    receipt = ensure_receipt(session, payment_id)
    if receipt is None:
        raise NotFoundError("Payment not found")
    return receipt


@router.get("/{receipt_id}")
def get_receipt(receipt_id: int, session: Session = Depends(get_session)):
    receipt, payment, user = load_receipt_bundle(session, receipt_id)
    return {
        "success": True,
        "receipt": receipt.model_dump(),
        "payment": payment.model_dump(),
        "user": user.model_dump(),
    }


@router.get("/payment/{payment_id}")
def get_receipt_for_payment(payment_id: int, session: Session = Depends(get_session)):
    receipt = _ensure_for_completed(session, payment_id)
    return {"success": True, "receipt": receipt.model_dump()}


@router.get("/download/{receipt_id}")
def download_receipt(receipt_id: int, session: Session = Depends(get_session)):
    receipt, payment, user = load_receipt_bundle(session, receipt_id)
    pdf = render_receipt_pdf(build_receipt_data(receipt, payment, user))
    return pdf_response(pdf, receipt.receipt_number)


@router.get("/payment/{payment_id}/pdf")
def download_receipt_for_payment(payment_id: int, session: Session = Depends(get_session)):
    receipt = _ensure_for_completed(session, payment_id)
    receipt, payment, user = load_receipt_bundle(session, receipt.id)
    pdf = render_receipt_pdf(build_receipt_data(receipt, payment, user))
    return pdf_response(pdf, receipt.receipt_number)


@router.post("/send-email/{receipt_id}")
def email_receipt(receipt_id: int, session: Session = Depends(get_session)):
    receipt, payment, user = load_receipt_bundle(session, receipt_id)
    pdf = render_receipt_pdf(build_receipt_data(receipt, payment, user))
    send_receipt_notifications(
        user=user,
        payment=payment,
        receipt_number=receipt.receipt_number,
        pdf_bytes=pdf,
    )
    return {
        "success": True,
        "message": "Receipt emails sent successfully to customer and operator",
    }
