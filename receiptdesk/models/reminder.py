from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


class ReminderChannel(str, Enum):
    email = "email"
    whatsapp = "whatsapp"


class ReminderStatus(str, Enum):
    sent = "sent"
    error = "error"


class Reminder(SQLModel, table=True):
    """Append-only audit log of reminder attempts."""

    id: Optional[int] = Field(default=None, primary_key=True)
    payment_id: int = Field(foreign_key="payment.id", index=True)

    channel: ReminderChannel
    message: str
    status: ReminderStatus = ReminderStatus.sent
    error: Optional[str] = None

    sent_at: datetime = Field(default_factory=datetime.utcnow)
