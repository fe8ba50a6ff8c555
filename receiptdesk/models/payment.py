from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional
from datetime import datetime


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)

    amount: float
    currency: str = Field(default="INR")
    payment_mode: str  # card | upi | net_banking | wallet | phonepe | cashfree | razorpay | qr | manual
    gateway: str = Field(default="manual")  # razorpay | phonepe | cashfree | manual
    status: str = Field(default="pending", index=True)  # pending | completed | failed | cancelled

    receipt_number: str = Field(index=True, unique=True)

    razorpay_order_id: Optional[str] = Field(default=None, index=True)
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None

    phonepe_transaction_id: Optional[str] = None

    cashfree_order_id: Optional[str] = Field(default=None, index=True)
    cashfree_payment_id: Optional[str] = None
    cashfree_payment_method: Optional[str] = None
    cashfree_payment_status: Optional[str] = None
    cashfree_payment_time: Optional[datetime] = None

    utr: Optional[str] = None
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
