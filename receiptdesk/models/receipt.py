from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Receipt(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    payment_id: int = Field(foreign_key="payment.id", index=True, unique=True)
    receipt_number: str
    generated_at: datetime = Field(default_factory=datetime.utcnow)
