from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from receiptdesk.constants.payment_status import PaymentMode
from receiptdesk.models.reminder import ReminderChannel
from receiptdesk.schemas.payment_schemas import CustomerDetails


class AdminLogin(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str


class UserUpsert(CustomerDetails):
    pass


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ReminderRequest(BaseModel):
    payment_id: int
    channel: ReminderChannel
    message: str = Field(min_length=1)


class DirectReceiptRequest(CustomerDetails):
    amount: float = Field(gt=0)
    payment_mode: PaymentMode
    description: Optional[str] = None
    send_email: bool = False
