"""
rate_limit.py

Exponential backoff for TMDB quota responses (HTTP 429).
TMDB allows roughly 40 requests per 10 seconds; a fan-out of a few calls rarely
hits it, but cache misses during bursts can.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_rate_limited(exc: Exception) -> bool:
    if hasattr(exc, "status"):
        return getattr(exc, "status") == 429
    return "429" in str(exc) or "rate limit" in str(exc).lower()


async def with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    service: Optional[str] = None,
    **kwargs,
) -> T:
    """Execute `func` and retry with exponential backoff on rate limit errors.

    Any other exception propagates immediately.
    """
    delay = base_delay
    last_exception: Optional[Exception] = None

    for attempt in range(max_retries):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not _is_rate_limited(e):
                raise
            last_exception = e
            if attempt < max_retries - 1:
                logger.warning(f"Rate limited by {service or 'remote'} on attempt {attempt + 1}/{max_retries}, sleeping {delay}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, max_delay)

    logger.error(f"Giving up on {service or 'remote'} after {max_retries} rate-limited attempts")
    raise last_exception or Exception(f"Max retries ({max_retries}) exceeded")
