import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime
from typing import Mapping, Optional

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


def cashfree_signature(raw_body: bytes, timestamp: str = "") -> str:
    message = timestamp.encode("utf-8") + raw_body
    digest = hmac.new(
        settings.CASHFREE_SECRET_KEY.encode("utf-8"), message, hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("utf-8")


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class CashfreeGateway(PaymentGateway):
    name = "cashfree"
    order_id_field = "cashfree_order_id"
    status_map = {
        "success": GatewayOutcome.SUCCESS,
        "paid": GatewayOutcome.SUCCESS,
        "failed": GatewayOutcome.FAILED,
        "cancelled": GatewayOutcome.CANCELLED,
        "user_dropped": GatewayOutcome.CANCELLED,
    }

    def create_order(self, *, payment: Payment, user: User) -> GatewayOrder:
        order_id = f"order_{payment.receipt_number}"
        payload = {
            "order_id": order_id,
            "order_amount": payment.amount,
            "order_currency": payment.currency,
            "customer_details": {
                "customer_id": f"customer_{user.id}",
                "customer_name": user.name,
                "customer_email": user.email,
                "customer_phone": user.phone,
            },
            "order_meta": {
                "return_url": f"{settings.BASE_URL}/payment/status?order_id={{order_id}}",
                "notify_url": f"{settings.BASE_URL}/webhook/cashfree",
            },
        }

        response = requests.post(
            f"{settings.cashfree_base_url}/orders",
            json=payload,
            headers={
                "x-client-id": settings.CASHFREE_APP_ID,
                "x-client-secret": settings.CASHFREE_SECRET_KEY,
                "x-api-version": settings.CASHFREE_API_VERSION,
                "Content-Type": "application/json",
            },
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

        if response.status_code >= 500:
            raise GatewayError(
                f"Cashfree API error ({response.status_code})",
                detail=response.text,
                transient=True,
            )
        if response.status_code >= 400:
            raise GatewayError(f"Cashfree API error ({response.status_code})", detail=response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayError("Cashfree returned an unreadable response", detail=response.text) from e
        if not isinstance(body, dict):
            raise GatewayError("Cashfree returned an unexpected response", detail=body)
        return GatewayOrder(
            order_id=body.get("order_id", order_id),
            session_token=body.get("payment_session_id"),
            payment_link=body.get("payment_link"),
            extra={"cf_order_id": body.get("cf_order_id")},
        )

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> GatewayCallback:
        require_secret(settings.CASHFREE_SECRET_KEY, self.name)
        timestamp = header(headers, "x-webhook-timestamp") or ""
        received = header(headers, "x-webhook-signature")
        require_signature(cashfree_signature(raw_body, timestamp), received, self.name)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Invalid webhook payload")

        # payment webhooks nest under "data"; order notifications carry "order" at the top
        data = payload.get("data") or payload
        order = data.get("order") or {}
        payment = data.get("payment") or {}

        order_id = order.get("order_id")
        if not order_id:
            raise ValidationError("Invalid webhook payload")

        status = payment.get("payment_status") or order.get("order_status") or ""
        return GatewayCallback(
            provider_order_id=order_id,
            provider_status=status,
            provider_payment_id=str(payment["cf_payment_id"]) if payment.get("cf_payment_id") else None,
            payment_method=_describe_method(payment.get("payment_method")),
            paid_at=_parse_time(payment.get("payment_time")),
            signature=received,
            raw=payload,
        )

    def apply_metadata(self, payment: Payment, callback: GatewayCallback) -> None:
        payment.cashfree_payment_status = callback.provider_status
        payment.cashfree_payment_time = callback.paid_at or datetime.utcnow()
        if callback.provider_payment_id:
            payment.cashfree_payment_id = callback.provider_payment_id
        if callback.payment_method:
            payment.cashfree_payment_method = callback.payment_method


def _describe_method(method) -> Optional[str]:
    if method is None:
        return None
    if isinstance(method, dict):
        # {"upi": {...}} style payloads
        return ",".join(method.keys()) or None
    return str(method)
