import time
import random
import logging

from receiptdesk.config import settings
from receiptdesk.services import email_service

logger = logging.getLogger(__name__)


def send_email_with_retry(
    to_email,
    subject: str,
    html: str,
    attachments=None,
    max_retries: int = None,
    backoff: float = None,
) -> bool:
    max_retries = max_retries or settings.EMAIL_MAX_RETRIES
    backoff = settings.GATEWAY_RETRY_BACKOFF_SECONDS if backoff is None else backoff
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            email_service.send_email(
                to=to_email,
                subject=subject,
                html=html,
                attachments=attachments
            )
            logger.info(f"Email sent to {to_email} (attempt {attempt})")
            return True

        except email_service.EmailDeliveryError as e:
            last_error = str(e)
            logger.warning(f"Attempt {attempt} failed: {last_error}")

            if "api-key" in last_error.lower() or "no valid recipient" in last_error.lower():
                break  # auth or address error, retrying will not help

            if attempt < max_retries and backoff > 0:
                time.sleep((2 ** attempt) * backoff + random.random())

    logger.error(f"Email permanently failed: {last_error}")
    return False
