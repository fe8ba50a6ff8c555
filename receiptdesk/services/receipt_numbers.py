import random
from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from receiptdesk.config import settings
from receiptdesk.errors import PersistenceError
from receiptdesk.models.payment import Payment

MAX_ATTEMPTS = 10


def format_receipt_number(when: datetime, serial: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.RECEIPT_PREFIX}-{when:%Y%m%d}-{serial:04d}"


def generate_receipt_number(session: Session, now: Optional[datetime] = None) -> str:
    """
    Human-facing receipt reference, e.g. AKRX-20250101-1234.

    Candidates already present in the store are skipped; the unique index on
    Payment.receipt_number catches anything that slips through a race.
    """
    now = now or datetime.utcnow()
    for _ in range(MAX_ATTEMPTS):
        candidate = format_receipt_number(now, random.randint(0, 9999))
        taken = session.exec(
            select(Payment.id).where(Payment.receipt_number == candidate)
        ).first()
        if taken is None:
            return candidate
    raise PersistenceError("Could not allocate a free receipt number")
