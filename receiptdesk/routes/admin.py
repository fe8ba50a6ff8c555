import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import func
from sqlmodel import Session, or_, select

from receiptdesk.constants.payment_status import PaymentStatus, normalize_status
from receiptdesk.database import get_session
from receiptdesk.errors import NotFoundError, StateTransitionError
from receiptdesk.models.admin import Admin
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.models.reminder import Reminder
from receiptdesk.models.user import User
from receiptdesk.routes.receipts import pdf_response
from receiptdesk.schemas.admin_schemas import (
    AdminLogin,
    DirectReceiptRequest,
    ReminderRequest,
    UserUpdate,
    UserUpsert,
)
from receiptdesk.schemas.payment_schemas import PaymentStatusUpdate
from receiptdesk.services import payment_service
from receiptdesk.services.notifier import send_reminder, send_receipt_notifications
from receiptdesk.services.pdf_service import render_receipt_pdf
from receiptdesk.services.receipt_service import build_receipt_data, ensure_receipt
from receiptdesk.services.receipt_tasks import issue_and_send_receipt, issue_receipt_and_notify
from receiptdesk.services.user_directory import find_or_create_user, update_user
from receiptdesk.utils.hash import verify_password
from receiptdesk.utils.pagination import paginate
from receiptdesk.utils.token import ADMIN_SCOPE, create_access_token, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


def _status_filter(query, status: Optional[str]):
    if status and status.lower() != "all":
        try:
            canonical = normalize_status(status)
        except ValueError:
            return query.where(Payment.status == status)
        if canonical == PaymentStatus.COMPLETED:
            # rows written before normalization may still say success/paid
            return query.where(Payment.status.in_(["completed", "success", "paid"]))
        return query.where(Payment.status == canonical.value)
    return query


def _payment_row(payment: Payment, user: Optional[User], receipt: Optional[Receipt]):
    return {
        **payment.model_dump(),
        "user": user.model_dump() if user else None,
        "receipt": receipt.model_dump() if receipt else None,
    }


def _receipt_row(row):
    receipt, payment, user = row
    return {**receipt.model_dump(), "payment": payment.model_dump(), "user": user.model_dump()}


# -------- AUTH --------

@router.post("/login")
def admin_login(payload: AdminLogin, session: Session = Depends(get_session)):
    admin = session.exec(
        select(Admin).where(
            or_(Admin.username == payload.username, Admin.email == payload.username)
        )
    ).first()

    if not admin or not admin.is_active or not verify_password(payload.password, admin.password):
        raise HTTPException(401, "Invalid credentials")

    token = create_access_token({"admin_id": admin.id, "scope": ADMIN_SCOPE})
    return {
        "success": True,
        "message": "Authentication successful",
        "access_token": token,
        "token_type": "bearer",
        "admin": {
            "id": admin.id,
            "username": admin.username,
            "email": admin.email,
            "name": admin.name,
            "role": admin.role,
        },
    }


# -------- DASHBOARD --------

@router.get("/stats")
def dashboard_stats(
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    paid = ["completed", "success", "paid"]

    total_payments = session.exec(select(func.count()).select_from(Payment)).one()
    successful_payments = session.exec(
        select(func.count()).select_from(Payment).where(Payment.status.in_(paid))
    ).one()
    total_receipts = session.exec(select(func.count()).select_from(Receipt)).one()
    total_users = session.exec(select(func.count()).select_from(User)).one()

    completed = session.exec(select(Payment).where(Payment.status.in_(paid))).all()
    total_revenue = sum(p.amount for p in completed)

    monthly = defaultdict(lambda: {"count": 0, "revenue": 0.0})
    for p in completed:
        key = p.created_at.strftime("%Y-%m")
        monthly[key]["count"] += 1
        monthly[key]["revenue"] += p.amount

    recent = session.exec(
        select(Payment, User)
        .join(User, User.id == Payment.user_id)
        .order_by(Payment.created_at.desc())
        .limit(5)
    ).all()

    return {
        "overview": {
            "total_payments": total_payments,
            "successful_payments": successful_payments,
            "total_receipts": total_receipts,
            "total_users": total_users,
            "total_revenue": total_revenue,
            "success_rate": (successful_payments / total_payments * 100) if total_payments else 0,
        },
        "recent_payments": [_payment_row(p, u, None) for p, u in recent],
        "monthly_stats": dict(sorted(monthly.items())),
    }


# -------- PAYMENTS --------

@router.get("/payments")
def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    query = (
        select(Payment, User, Receipt)
        .join(User, User.id == Payment.user_id)
        .join(Receipt, Receipt.payment_id == Payment.id, isouter=True)
    )
    query = _status_filter(query, status)

    if start_date:
        query = query.where(func.date(Payment.created_at) >= start_date)
    if end_date:
        query = query.where(func.date(Payment.created_at) <= end_date)

    if search:
        s = f"%{search}%"
        query = query.where(
            (User.name.ilike(s))
            | (User.email.ilike(s))
            | (User.phone.ilike(s))
            | (Payment.receipt_number.ilike(s))
            | (Payment.utr.ilike(s))
        )

    return paginate(
        session=session,
        query=query.order_by(Payment.created_at.desc()),
        page=page,
        limit=limit,
        serialize=lambda row: _payment_row(*row),
    )


@router.get("/payments/{payment_id}")
def get_payment_details(
    payment_id: int,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    payment = payment_service.get_payment(session, payment_id)
    user = session.get(User, payment.user_id)
    receipt = session.exec(select(Receipt).where(Receipt.payment_id == payment.id)).first()
    reminders = session.exec(
        select(Reminder).where(Reminder.payment_id == payment.id).order_by(Reminder.sent_at.desc())
    ).all()
    return {
        **_payment_row(payment, user, receipt),
        "reminders": [r.model_dump() for r in reminders],
    }


@router.patch("/payments/{payment_id}/status")
def override_payment_status(
    payment_id: int,
    payload: PaymentStatusUpdate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    payment = payment_service.get_payment(session, payment_id)
    result = payment_service.admin_set_status(session, payment, payload.status)
    logger.info(f"Admin {admin.username} set payment {payment_id} to {result.payment.status}")
    if result.became_paid:
        background_tasks.add_task(issue_receipt_and_notify, payment_id)
    return {
        "success": True,
        "message": "Payment status updated" if result.transitioned else "Payment status unchanged",
        "payment": result.payment.model_dump(),
    }


@router.post("/payments/{payment_id}/approve")
def approve_payment(
    payment_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    payment = payment_service.get_payment(session, payment_id)
    result = payment_service.approve_manual_payment(session, payment)
    if result.became_paid:
        background_tasks.add_task(issue_receipt_and_notify, payment_id)
    return {
        "success": True,
        "message": "Payment approved" if result.transitioned else "Payment already approved",
        "payment": result.payment.model_dump(),
    }


@router.post("/payments/{payment_id}/resend-receipt")
def resend_receipt(
    payment_id: int,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    payment = payment_service.get_payment(session, payment_id)
    if payment.status != PaymentStatus.COMPLETED.value:
        raise StateTransitionError(
            f"Payment is {payment.status}; receipts are issued for completed payments"
        )
    receipt = issue_and_send_receipt(session, payment_id)
    return {
        "success": True,
        "message": "Receipt emailed to customer and operator",
        "receipt": receipt.model_dump(),
    }


# -------- RECEIPTS --------

@router.get("/receipts")
def list_receipts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    query = (
        select(Receipt, Payment, User)
        .join(Payment, Payment.id == Receipt.payment_id)
        .join(User, User.id == Payment.user_id)
    )
    if search:
        s = f"%{search}%"
        query = query.where(
            (Receipt.receipt_number.ilike(s)) | (User.name.ilike(s)) | (User.email.ilike(s))
        )

    return paginate(
        session=session,
        query=query.order_by(Receipt.generated_at.desc()),
        page=page,
        limit=limit,
        serialize=_receipt_row,
    )


@router.post("/direct-receipt")
def create_direct_receipt(
    payload: DirectReceiptRequest,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    """Record an already-settled payment and hand back its PDF receipt."""
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
        gateway="manual",
        status=PaymentStatus.COMPLETED,
        details={"description": payload.description, "recorded_by": admin.username}
        if payload.description
        else {"recorded_by": admin.username},
    )
    receipt = ensure_receipt(session, payment.id)
    pdf = render_receipt_pdf(build_receipt_data(receipt, payment, user))

    if payload.send_email:
        send_receipt_notifications(
            user=user,
            payment=payment,
            receipt_number=receipt.receipt_number,
            pdf_bytes=pdf,
        )

    return pdf_response(pdf, receipt.receipt_number)


# -------- USERS --------

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    query = select(User)
    if search:
        s = f"%{search}%"
        query = query.where(
            (User.name.ilike(s)) | (User.email.ilike(s)) | (User.mobile.ilike(s))
        )
    return paginate(
        session=session,
        query=query.order_by(User.created_at.desc()),
        page=page,
        limit=limit,
        serialize=User.model_dump,
    )


@router.post("/users")
def upsert_user(
    payload: UserUpsert,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    user = find_or_create_user(
        session,
        email=payload.email,
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
    )
    return {"success": True, "user": user.model_dump()}


@router.put("/users/{user_id}")
def edit_user(
    user_id: int,
    payload: UserUpdate,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    user = update_user(session, user, **payload.model_dump(exclude_unset=True))
    return {"success": True, "user": user.model_dump()}


# -------- REMINDERS --------

@router.post("/send-reminder")
def admin_send_reminder(
    payload: ReminderRequest,
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    try:
        result = send_reminder(
            session,
            payment_id=payload.payment_id,
            channel=payload.channel,
            message=payload.message,
        )
    except NotFoundError as e:
        # unknown payment/user is a bad request here, nothing was attempted
        raise HTTPException(400, e.message)

    return {
        "success": result.success,
        "message": result.message,
        "reminder": result.reminder.model_dump(),
    }


@router.get("/reminders")
def list_reminders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    payment_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
    admin: Admin = Depends(require_admin),
):
    query = select(Reminder)
    if payment_id:
        query = query.where(Reminder.payment_id == payment_id)
    return paginate(
        session=session,
        query=query.order_by(Reminder.sent_at.desc()),
        page=page,
        limit=limit,
        serialize=Reminder.model_dump,
    )
