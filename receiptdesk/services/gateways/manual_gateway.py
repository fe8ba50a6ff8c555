import re
from typing import Mapping

from receiptdesk.config import settings
from receiptdesk.errors import ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.services.gateways.base import GatewayCallback, GatewayOrder, PaymentGateway

UTR_PATTERN = re.compile(r"^[A-Za-z0-9]{10,22}$")


def is_valid_utr(utr: str) -> bool:
    return bool(utr) and UTR_PATTERN.match(utr) is not None


class ManualGateway(PaymentGateway):
    """QR code / bank transfer; settled by UTR entry or admin approval."""

    name = "manual"
    order_id_field = "receipt_number"

    def create_order(self, *, payment: Payment, user: User) -> GatewayOrder:
        extra = {}
        if settings.QR_UPI_VPA:
            extra["upi_uri"] = (
                f"upi://pay?pa={settings.QR_UPI_VPA}&pn={settings.STORE_NAME}"
                f"&am={payment.amount:.2f}&cu={payment.currency}&tn={payment.receipt_number}"
            )
        return GatewayOrder(order_id=payment.receipt_number, extra=extra)

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayCallback:
        raise ValidationError("Manual payments have no provider callback")
