"""Backoff delay policies.

A delay policy is any callable mapping the 1-based retry number to a wait
in seconds. The default is exponential backoff with bounded jitter.
"""

import random
from collections.abc import Callable
from functools import partial

DelayFn = Callable[[int], float]

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_JITTER = 0.5


def exponential_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_jitter: float = DEFAULT_MAX_JITTER,
) -> float:
    """Exponential backoff with uniform jitter.

    Delay follows the formula: base_delay * 2^(attempt - 1) + U(0, max_jitter)

    Args:
        attempt: Retry number, starting at 1. Lower values are treated as 1.
        base_delay: Delay in seconds before the first retry (default 1.0).
        max_jitter: Upper bound of the random component (default 0.5).

    Returns:
        Seconds to wait, never less than base_delay.
    """
    attempt = max(attempt, 1)
    return base_delay * (2 ** (attempt - 1)) + random.uniform(0, max_jitter)


def make_exponential_delay(
    base_delay: float = DEFAULT_BASE_DELAY,
    max_jitter: float = DEFAULT_MAX_JITTER,
) -> DelayFn:
    """Build an exponential delay policy with custom base and jitter."""
    if base_delay < 0 or max_jitter < 0:
        raise ValueError("base_delay and max_jitter must be non-negative")
    return partial(exponential_delay, base_delay=base_delay, max_jitter=max_jitter)


def no_delay(attempt: int) -> float:
    """Retry immediately. Useful in tests."""
    return 0.0
