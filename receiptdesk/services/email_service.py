import base64
import logging
import re
from typing import List, Optional, Tuple, Union

import requests

from receiptdesk.config import settings

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
    pass


def is_valid_email(email):
    if isinstance(email, list):
        return all(is_valid_email(e) for e in email)

    if not email:
        return False

    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


def send_email(
    to: Union[str, List[str]],
    subject: str,
    html: str,
    attachments: Optional[List[Tuple[str, bytes, str]]] = None,
) -> None:
    """
    Send email via Brevo.

    attachments: List of tuples
        (filename, file_bytes, mime_type)

    Raises EmailDeliveryError on invalid recipients or transport/API failure.
    """

    # Normalize emails into a list
    if isinstance(to, list):
        valid_emails = [e for e in to if is_valid_email(e)]
    else:
        valid_emails = [to] if is_valid_email(to) else []

    if not valid_emails:
        logger.warning(f"No valid emails found: {to}")
        raise EmailDeliveryError(f"No valid recipient in {to!r}")

    payload = {
        "sender": {
            "email": settings.MAIL_FROM,
            "name": settings.STORE_NAME,
        },
        "to": [{"email": e} for e in valid_emails],
        "subject": subject,
        "htmlContent": html,
    }

    if attachments:
        payload["attachment"] = [
            {
                "name": filename,
                "content": base64.b64encode(file_bytes).decode("utf-8"),
            }
            for filename, file_bytes, mime_type in attachments
        ]

    headers = {
        "api-key": settings.BREVO_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers=headers,
            timeout=10,
        )
    except requests.exceptions.RequestException as e:
        logger.exception("Brevo email exception")
        raise EmailDeliveryError(str(e)) from e

    if response.status_code >= 400:
        logger.error(
            f"Brevo email failed ({response.status_code}): {response.text}"
        )
        raise EmailDeliveryError(f"Brevo rejected email ({response.status_code}): {response.text}")

    logger.info(f"Brevo email sent to {valid_emails}")
