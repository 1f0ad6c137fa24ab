"""Retry policy for backend calls.

Transient API failures (timeouts, dropped connections, 429 and 5xx) are
retried with exponential backoff plus jitter. The limits come from
config.yaml (``max_retries``, ``retry_base_delay``, ``retry_max_delay``).
"""

import logging
import random
import time
from functools import wraps

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_DELAY = 1.0
MAX_DELAY = 30.0
JITTER_FACTOR = 0.5
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def is_retryable(exc: Exception) -> bool:
    """True for failures worth another attempt; auth and validation errors are not."""
    import anthropic
    import openai

    transient = (
        anthropic.APITimeoutError,
        anthropic.APIConnectionError,
        openai.APITimeoutError,
        openai.APIConnectionError,
    )
    if isinstance(exc, transient):
        return True
    if isinstance(exc, (anthropic.APIStatusError, openai.APIStatusError)):
        return exc.status_code in RETRYABLE_STATUS
    return False


def backoff_delay(attempt: int, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """Delay before retry number ``attempt + 1``: doubling, capped, with jitter on top."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay + random.uniform(0, JITTER_FACTOR * delay)


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY,
    label: str = "backend call",
):
    """Decorator: retry transient failures up to ``max_retries`` times, then re-raise."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    if attempt >= max_retries or not is_retryable(exc):
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    attempt += 1
                    logger.warning(
                        "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                        label,
                        attempt,
                        max_retries + 1,
                        exc,
                        delay,
                    )
                    time.sleep(delay)

        return wrapper

    return decorator
