"""Retry backoff schedule."""

from ..config import BASE_DELAY_MS, MAX_DELAY_MS


def delay_ms(
    attempts: int,
    base_ms: int = BASE_DELAY_MS,
    cap_ms: int = MAX_DELAY_MS,
) -> int:
    """Delay before the next retry after `attempts` failures (attempts >= 1)."""
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    # Past the cap the exponent no longer matters
    if attempts > 32:
        return cap_ms
    return min(base_ms * 2 ** (attempts - 1), cap_ms)
