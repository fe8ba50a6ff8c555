from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from receiptdesk.database import get_session
from receiptdesk.models.payment import Payment
from receiptdesk.models.receipt import Receipt
from receiptdesk.models.user import User
from receiptdesk.schemas.admin_schemas import Token
from receiptdesk.schemas.customer_schemas import CustomerLogin
from receiptdesk.services.user_directory import get_user_by_mobile
from receiptdesk.utils.pagination import paginate
from receiptdesk.utils.token import CUSTOMER_SCOPE, create_access_token, get_current_customer

router = APIRouter()


@router.post("/login", response_model=Token)
def customer_login(payload: CustomerLogin, session: Session = Depends(get_session)):
    user = get_user_by_mobile(session, payload.mobile)
    if not user:
        raise HTTPException(404, "No payments found for this mobile number")

    token = create_access_token({"user_id": user.id, "scope": CUSTOMER_SCOPE})
    return Token(access_token=token, token_type="bearer")


@router.get("/payments")
def my_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_customer),
):
    query = (
        select(Payment, Receipt)
        .join(Receipt, Receipt.payment_id == Payment.id, isouter=True)
        .where(Payment.user_id == current_user.id)
        .order_by(Payment.created_at.desc())
    )
    data = paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        serialize=lambda row: {
            **row[0].model_dump(),
            "receipt": row[1].model_dump() if row[1] else None,
        },
    )
    return {"success": True, "user": current_user.model_dump(), **data}
