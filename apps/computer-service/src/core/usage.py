# [[LUMEN]]/apps/computer-service/src/core/usage.py
# Purpose: Daily usage limits per identity and feature
# Architecture: Core Layer
# Dependencies: redis (optional at runtime), asyncio

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional
import redis
from core.config import logger
from domain.protocol import UsageDecision

# Counters outlive their day slightly so late reads near midnight still resolve
COUNTER_TTL_SECONDS = 2 * 24 * 3600

CATEGORY_LABELS = {
    "academic": "Academic",
}
FEATURE_LABELS = {
    "computer": "Computer Science",
}


class UsageGate:
    """
    Allow/deny decisions for feature invocations, reset every UTC day.

    Counts live in Redis when a client is supplied, otherwise in this process.
    """
    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        limits: Dict[str, int],
        default_limit: int,
    ):
        self.redis_client = redis_client
        self.limits = limits
        self.default_limit = default_limit
        self._local_counts: Dict[str, int] = {}

    @staticmethod
    def counter_key(identity: str, category: str, feature: str, day: Optional[str] = None) -> str:
        day = day or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return f"lumen:usage:{identity}:{category}:{feature}:{day}"

    def limit_for(self, category: str, feature: str) -> int:
        return self.limits.get(f"{category}:{feature}", self.default_limit)

    async def _read(self, key: str) -> int:
        if self.redis_client is None:
            return self._local_counts.get(key, 0)
        raw = await asyncio.to_thread(self.redis_client.get, key)
        return int(raw) if raw else 0

    async def check(self, identity: str, category: str, feature: str) -> UsageDecision:
        limit = self.limit_for(category, feature)
        used = await self._read(self.counter_key(identity, category, feature))
        remaining = max(limit - used, 0)

        if remaining <= 0:
            label = (
                f"{CATEGORY_LABELS.get(category, category.title())} "
                f"({FEATURE_LABELS.get(feature, feature.title())})"
            )
            logger.info(f"Usage limit reached for {identity} on {category}/{feature} ({used}/{limit})")
            return UsageDecision(
                allowed=False,
                remaining=0,
                error=f"Daily limit exceeded for {label}.",
            )
        return UsageDecision(allowed=True, remaining=remaining)

    async def increment(self, identity: str, category: str, feature: str) -> int:
        """Records one invocation and returns the new count."""
        key = self.counter_key(identity, category, feature)
        if self.redis_client is None:
            self._local_counts[key] = self._local_counts.get(key, 0) + 1
            return self._local_counts[key]

        def _incr() -> int:
            pipe = self.redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, COUNTER_TTL_SECONDS)
            count, _ = pipe.execute()
            return int(count)

        return await asyncio.to_thread(_incr)
