import logging
import random
import time
from typing import Callable, TypeVar

import requests

from receiptdesk.config import settings
from receiptdesk.errors import AppError, GatewayError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, GatewayError):
        return exc.transient
    return isinstance(exc, TRANSIENT_ERRORS)


def backoff_delay(attempt: int, base: float) -> float:
    if base <= 0:
        return 0
    return base * (2 ** (attempt - 1)) + random.random() * base


def call_with_retry(
    fn: Callable[[], T],
    *,
    label: str,
    max_attempts: int = None,
    base_delay: float = None,
) -> T:
    """
    Run a gateway call, retrying transient network failures with backoff.

    Provider-reported failures are raised on the first attempt. Once the
    attempts are used up the last transient error is surfaced as GatewayError.
    """
    max_attempts = max_attempts or settings.GATEWAY_MAX_RETRIES
    base_delay = settings.GATEWAY_RETRY_BACKOFF_SECONDS if base_delay is None else base_delay
    last_error = None

    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not is_transient(e):
                if isinstance(e, AppError):
                    raise
                logger.error(f"{label}: unexpected failure: {e!r}")
                raise GatewayError(f"{label} failed", detail=str(e)) from e
            last_error = e
            logger.warning(f"{label}: attempt {attempt}/{max_attempts} failed: {e}")
            if attempt < max_attempts:
                time.sleep(backoff_delay(attempt, base_delay))

    logger.error(f"{label}: giving up after {max_attempts} attempts")
    raise GatewayError(f"{label} failed", detail=str(last_error), transient=True) from last_error
