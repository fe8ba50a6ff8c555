import re
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from receiptdesk.constants.payment_status import PaymentMode

PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


def clean_phone(value: str) -> str:
    """Strip everything but digits, keeping one leading '+'."""
    value = (value or "").strip()
    if value.startswith("+"):
        return "+" + re.sub(r"\D", "", value[1:])
    return re.sub(r"\D", "", value)


class CustomerDetails(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str
    address: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        cleaned = clean_phone(value)
        if not PHONE_PATTERN.match(cleaned):
            raise ValueError("Phone number must be 10-15 digits with an optional + prefix")
        return cleaned


class CreateOrderRequest(CustomerDetails):
    amount: float = Field(gt=0)
    payment_mode: PaymentMode
    gateway: Optional[str] = None


class RazorpayVerifyRequest(BaseModel):
    payment_id: int
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class UtrSubmitRequest(BaseModel):
    payment_id: int
    utr: str = Field(min_length=1)


class QrPaymentRequest(CustomerDetails):
    amount: float = Field(gt=0)
    utr: str = Field(min_length=1)
    details: Optional[dict[str, Any]] = None


class PaymentStatusUpdate(BaseModel):
    status: str
