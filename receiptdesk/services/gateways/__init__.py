from receiptdesk.config import settings
from receiptdesk.constants.payment_status import PaymentMode
from receiptdesk.errors import ValidationError
from receiptdesk.services.gateways.base import GatewayCallback, GatewayOrder, PaymentGateway
from receiptdesk.services.gateways.cashfree_gateway import CashfreeGateway
from receiptdesk.services.gateways.manual_gateway import ManualGateway
from receiptdesk.services.gateways.phonepe_gateway import PhonePeGateway
from receiptdesk.services.gateways.razorpay_gateway import RazorpayGateway

GATEWAYS = {
    "razorpay": RazorpayGateway,
    "phonepe": PhonePeGateway,
    "cashfree": CashfreeGateway,
    "manual": ManualGateway,
}

_instances = {}


def get_gateway(name: str) -> PaymentGateway:
    try:
        gateway_cls = GATEWAYS[name]
    except KeyError:
        raise ValidationError(f"Unsupported gateway: {name}")
    if name not in _instances:
        _instances[name] = gateway_cls()
    return _instances[name]


def resolve_gateway_name(payment_mode: PaymentMode, requested=None) -> str:
    """
    Pick the provider for a checkout: modes that name a provider use it,
    qr/manual never leave the building, the rest go to the requested or
    default gateway.
    """
    mode = PaymentMode(payment_mode)
    if mode.value in GATEWAYS:
        return mode.value
    if mode in (PaymentMode.QR, PaymentMode.MANUAL):
        return "manual"
    return requested or settings.DEFAULT_GATEWAY


__all__ = [
    "GatewayCallback",
    "GatewayOrder",
    "PaymentGateway",
    "get_gateway",
    "resolve_gateway_name",
]
