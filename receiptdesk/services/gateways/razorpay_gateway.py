import json
import logging
from typing import Mapping

import razorpay
import requests

from receiptdesk.config import settings
from receiptdesk.constants.payment_status import GatewayOutcome
from receiptdesk.errors import GatewayError, SignatureError, ValidationError
from receiptdesk.models.payment import Payment
from receiptdesk.models.user import User
from receiptdesk.services.gateways.base import (
    GatewayCallback,
    GatewayOrder,
    PaymentGateway,
    header,
    require_secret,
)

logger = logging.getLogger(__name__)


class RazorpayGateway(PaymentGateway):
    name = "razorpay"
    order_id_field = "razorpay_order_id"
    status_map = {
        "captured": GatewayOutcome.SUCCESS,
        "paid": GatewayOutcome.SUCCESS,
        "failed": GatewayOutcome.FAILED,
    }

    def __init__(self, client: razorpay.Client = None):
        self._client = client

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            self._client = razorpay.Client(
                auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
            )
        return self._client

    def create_order(self, *, payment: Payment, user: User) -> GatewayOrder:
        try:
            order = self.client.order.create(
                {
                    "amount": int(round(payment.amount * 100)),  # paise
                    "currency": payment.currency,
                    "receipt": payment.receipt_number,
                    "notes": {
                        "payment_id": payment.id,
                        "user_email": user.email,
                    },
                }
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout):
            raise
        except Exception as e:
            raise GatewayError("Failed to create Razorpay order", detail=str(e)) from e

        return GatewayOrder(
            order_id=order["id"],
            extra={"razorpay_key": settings.RAZORPAY_KEY_ID},
        )

    def verify_checkout(self, *, order_id: str, payment_id: str, signature: str) -> None:
        require_secret(settings.RAZORPAY_KEY_SECRET, self.name)
        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            logger.warning(f"razorpay: checkout signature mismatch for order {order_id}")
            raise SignatureError("Payment verification failed")

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayCallback:
        require_secret(settings.RAZORPAY_WEBHOOK_SECRET, self.name)
        signature = header(headers, "X-Razorpay-Signature")
        if not signature:
            raise SignatureError("Missing webhook signature")
        try:
            self.client.utility.verify_webhook_signature(
                raw_body.decode("utf-8"), signature, settings.RAZORPAY_WEBHOOK_SECRET
            )
        except razorpay.errors.SignatureVerificationError:
            logger.warning("razorpay: rejected webhook with bad signature")
            raise SignatureError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
            entity = payload["payload"]["payment"]["entity"]
        except (ValueError, KeyError, TypeError):
            raise ValidationError("Invalid webhook payload")

        if not entity.get("order_id"):
            raise ValidationError("Invalid webhook payload")

        return GatewayCallback(
            provider_order_id=entity["order_id"],
            provider_status=entity.get("status", ""),
            provider_payment_id=entity.get("id"),
            payment_method=entity.get("method"),
            raw=payload,
        )

    def apply_metadata(self, payment: Payment, callback: GatewayCallback) -> None:
        if callback.provider_payment_id:
            payment.razorpay_payment_id = callback.provider_payment_id
        if callback.signature:
            payment.razorpay_signature = callback.signature
