"""Display-only user counters derived from the hour since 2024-01-01."""

import math
import time
from datetime import datetime, timezone

INITIAL_TOTAL = 300_000
MIN_ACTIVE = 30_000
MAX_ACTIVE = 100_000

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def hours_since_epoch(now: float | None = None) -> int:
    now = time.time() if now is None else now
    return max(0, math.floor((now - EPOCH.timestamp()) / 3600))


def seeded_random(seed: float) -> float:
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def user_stats(now: float | None = None) -> dict:
    """Total users grow by 50..1499 each hour; active users drift between bounds."""
    hours = hours_since_epoch(now)
    total_increase = sum(math.floor(seeded_random(h * 1000) * 1450) + 50 for h in range(hours))

    variation = math.sin(hours * 0.1) * 0.3 + 0.7
    base_active = MIN_ACTIVE + (MAX_ACTIVE - MIN_ACTIVE) * seeded_random(hours)
    return {
        "total_users": INITIAL_TOTAL + total_increase,
        "active_users": max(MIN_ACTIVE, math.floor(base_active * variation)),
    }
