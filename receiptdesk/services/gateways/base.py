import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from receiptdesk.constants.payment_status import GatewayOutcome
from receiptdesk.errors import SignatureError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    order_id: str
    session_token: Optional[str] = None
    payment_link: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayCallback:
    provider_order_id: str
    provider_status: str
    provider_payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    signature: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works on plain dicts too."""
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def require_secret(secret: str, gateway: str):
    # an empty key signs anything, so refuse rather than verify against it
    if not secret:
        logger.error(f"{gateway}: callback rejected, signing secret is not configured")
        raise SignatureError(f"{gateway} signing secret is not configured")


def require_signature(expected: str, received: Optional[str], gateway: str):
    if not received or not hmac.compare_digest(expected, received):
        logger.warning(f"{gateway}: rejected callback with bad signature")
        raise SignatureError("Invalid signature")


class PaymentGateway:
    """
    Adapter around one payment provider.

    order_id_field names the Payment column that stores the provider's
    correlation id; callbacks are matched back to payments through it.
    """

    name: str = ""
    order_id_field: str = ""
    status_map: Dict[str, GatewayOutcome] = {}

    def create_order(self, *, payment: Payment, user: User) -> GatewayOrder:
        raise NotImplementedError

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayCallback:
        raise NotImplementedError

    def map_status(self, provider_status: Optional[str]) -> GatewayOutcome:
        # unknown vocabulary means "no decision yet", never an error
        return self.status_map.get((provider_status or "").strip().lower(), GatewayOutcome.PENDING)

    def apply_metadata(self, payment: Payment, callback: GatewayCallback) -> None:
        pass
