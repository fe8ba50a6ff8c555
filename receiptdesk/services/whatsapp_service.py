import logging

import requests

from receiptdesk.config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class MessagingError(Exception):
    pass


class MessagingNotConfigured(MessagingError):
    pass


def whatsapp_configured() -> bool:
    return bool(
        settings.TWILIO_ACCOUNT_SID
        and settings.TWILIO_AUTH_TOKEN
        and settings.TWILIO_WHATSAPP_FROM
    )


def send_whatsapp(to: str, body: str) -> str:
    """Send a WhatsApp message through Twilio; returns the message SID."""
    if not whatsapp_configured():
        raise MessagingNotConfigured("WhatsApp messaging (Twilio) is not configured")
    if not to:
        raise MessagingError("Customer has no phone number on file")

    try:
        response = requests.post(
            TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID),
            data={
                "From": f"whatsapp:{settings.TWILIO_WHATSAPP_FROM}",
                "To": f"whatsapp:{to}",
                "Body": body,
            },
            auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            timeout=10,
        )
    except requests.exceptions.RequestException as e:
        raise MessagingError(f"Failed to send WhatsApp message: {e}") from e

    if response.status_code >= 400:
        logger.error(f"Twilio rejected message ({response.status_code}): {response.text}")
        raise MessagingError(f"Failed to send WhatsApp message ({response.status_code})")

    sid = response.json().get("sid", "")
    logger.info(f"WhatsApp message {sid} sent to {to}")
    return sid
