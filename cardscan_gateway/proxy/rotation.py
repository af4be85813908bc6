"""Key rotation arithmetic for the forwarding proxy.

There is no shared rotation cursor: every inbound request picks its own
random starting key and walks the pool from there. Independent instances
(serverless containers, workers) therefore spread load across the pool
without coordinating.
"""

import random
from collections.abc import Sequence


def choose_start_index(pool_size: int) -> int:
    """Pick a starting key index uniformly at random in [0, pool_size)."""
    return random.randrange(pool_size)


def key_index(start: int, attempt: int, pool_size: int) -> int:
    return (start + attempt) % pool_size


def backoff_delay(attempt: int, delays_ms: Sequence[int], default_ms: int) -> float:
    """Seconds to wait before ``attempt`` (0-based). The first attempt never waits.

    Attempt k >= 1 uses ``delays_ms[k - 1]``, or ``default_ms`` once the
    table runs out.
    """
    if attempt <= 0:
        return 0.0
    if attempt - 1 < len(delays_ms):
        return delays_ms[attempt - 1] / 1000
    return default_ms / 1000
