from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMode(str, Enum):
    CARD = "card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    PHONEPE = "phonepe"
    CASHFREE = "cashfree"
    RAZORPAY = "razorpay"
    QR = "qr"
    MANUAL = "manual"


class GatewayOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PENDING = "pending"


TERMINAL_STATUSES = {
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
}

# forward-only moves reachable without an admin override
ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: [
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    ],
    PaymentStatus.COMPLETED: [],
    PaymentStatus.FAILED: [],
    PaymentStatus.CANCELLED: [],
}

OUTCOME_TO_STATUS = {
    GatewayOutcome.SUCCESS: PaymentStatus.COMPLETED,
    GatewayOutcome.FAILED: PaymentStatus.FAILED,
    GatewayOutcome.CANCELLED: PaymentStatus.CANCELLED,
    GatewayOutcome.PENDING: PaymentStatus.PENDING,
}

_STATUS_ALIASES = {
    "success": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "pending": PaymentStatus.PENDING,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
}


def normalize_status(value) -> PaymentStatus:
    """Fold legacy spellings ("success", "paid") onto the canonical statuses."""
    if isinstance(value, PaymentStatus):
        return value
    try:
        return _STATUS_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown payment status: {value}")


def can_transition(current, target) -> bool:
    return normalize_status(target) in ALLOWED_TRANSITIONS[normalize_status(current)]
