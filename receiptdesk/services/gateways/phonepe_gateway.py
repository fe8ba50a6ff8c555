import base64
import hashlib
import json
import logging
from typing import Mapping

import requests

from receiptdesk.config import settings
from receiptdesk.constants.payment_status import GatewayOutcome
from receiptdesk.errors import GatewayError, ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.services.gateways.base import (
    GatewayCallback,
    GatewayOrder,
    PaymentGateway,
    header,
    require_secret,
    require_signature,
)

logger = logging.getLogger(__name__)

PAY_ENDPOINT = "/pg/v1/pay"


def phonepe_checksum(payload: str, suffix: str = "") -> str:
    digest = hashlib.sha256((payload + suffix + settings.PHONEPE_SALT_KEY).encode("utf-8")).hexdigest()
    return f"{digest}###{settings.PHONEPE_SALT_INDEX}"


class PhonePeGateway(PaymentGateway):
    name = "phonepe"
    # PhonePe echoes our merchantTransactionId, which is the receipt number
    order_id_field = "receipt_number"
    status_map = {
        "payment_success": GatewayOutcome.SUCCESS,
        "payment_error": GatewayOutcome.FAILED,
        "payment_declined": GatewayOutcome.FAILED,
        "timed_out": GatewayOutcome.FAILED,
        "payment_cancelled": GatewayOutcome.CANCELLED,
        "user_cancelled": GatewayOutcome.CANCELLED,
    }

    def create_order(self, *, payment: Payment, user: User) -> GatewayOrder:
        payload = {
            "merchantId": settings.PHONEPE_MERCHANT_ID,
            "merchantTransactionId": payment.receipt_number,
            "merchantUserId": str(user.id),
            "amount": int(round(payment.amount * 100)),  # paise
            "redirectUrl": f"{settings.BASE_URL}/payment/status?payment_id={payment.id}",
            "redirectMode": "POST",
            "callbackUrl": f"{settings.BASE_URL}/payment/phonepe-callback",
            "mobileNumber": user.phone,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("utf-8")

        response = requests.post(
            f"{settings.PHONEPE_BASE_URL}{PAY_ENDPOINT}",
            json={"request": encoded},
            headers={
                "Content-Type": "application/json",
                "X-VERIFY": phonepe_checksum(encoded, PAY_ENDPOINT),
                "accept": "application/json",
            },
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

        if response.status_code >= 500:
            raise GatewayError(
                f"PhonePe API error ({response.status_code})",
                detail=response.text,
                transient=True,
            )
        if response.status_code >= 400:
            raise GatewayError(f"PhonePe API error ({response.status_code})", detail=response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayError("PhonePe returned an unreadable response", detail=response.text) from e
        if not isinstance(body, dict) or not body.get("success"):
            raise GatewayError("PhonePe rejected the payment request", detail=body)

        # data and its children come back as null on some rejections
        instrument = (body.get("data") or {}).get("instrumentResponse") or {}
        redirect = (instrument.get("redirectInfo") or {}).get("url")
        if not redirect:
            raise GatewayError("PhonePe did not return a payment link", detail=body)
        return GatewayOrder(
            order_id=payment.receipt_number,
            payment_link=redirect,
            extra={"phonepe_code": body.get("code")},
        )

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayCallback:
        try:
            encoded = json.loads(raw_body)["response"]
        except (ValueError, KeyError, TypeError):
            raise ValidationError("Invalid callback payload")

        require_secret(settings.PHONEPE_SALT_KEY, self.name)
        require_signature(phonepe_checksum(encoded), header(headers, "X-VERIFY"), self.name)

        try:
            decoded = json.loads(base64.b64decode(encoded).decode("utf-8"))
        except (ValueError, TypeError):
            raise ValidationError("Invalid callback payload")

        data = decoded.get("data") or {}
        order_id = data.get("merchantTransactionId") or decoded.get("merchantTransactionId")
        if not order_id:
            raise ValidationError("Invalid callback payload")

        instrument = data.get("paymentInstrument") or {}
        return GatewayCallback(
            provider_order_id=order_id,
            provider_status=decoded.get("code", ""),
            provider_payment_id=data.get("transactionId") or decoded.get("transactionId"),
            payment_method=instrument.get("type"),
            raw=decoded,
        )

    def apply_metadata(self, payment: Payment, callback: GatewayCallback) -> None:
        if callback.provider_payment_id:
            payment.phonepe_transaction_id = callback.provider_payment_id
