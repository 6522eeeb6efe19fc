"""Fixed-window rate limiting for agent executions."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from relay_sdk.logging import get_logger

from orchestration.exceptions import RateLimitExceededError
from orchestration.models import ExecutionContext
from orchestration.plugins.base import AgentInvocation, BasePlugin, PluginConfig, PluginMetadata

KeyGenerator = Callable[[str, ExecutionContext], str]

BURST_WINDOW_SECONDS = 60
HOURLY_WINDOW_SECONDS = 3600


@dataclass
class RateLimitEntry:
    """Counters for one key. Each window resets once its reset time passes."""

    count: int
    reset_at: float
    burst_count: int
    burst_reset_at: float


def default_rate_limit_key(agent_id: str, context: ExecutionContext) -> str:
    return f"{agent_id}:{context.metadata.get('user_id') or 'anonymous'}"


class RateLimiterPlugin(BasePlugin):
    """Rejects agent executions above the burst or hourly limit for their key.

    Options:
        requests_per_hour: Hourly limit (1000)
        burst_limit: Limit per 60 second window (10)
        requests_per_minute: Reported only (60)
        key_generator: ``(agent_id, context) -> key``
        clock: Monotonic clock in seconds
    """

    metadata = PluginMetadata(
        name="rate-limiter",
        version="1.0.0",
        description="Rate limits agent executions to prevent API abuse",
        keywords=("rate-limit",),
    )

    def __init__(self, config: PluginConfig | None = None) -> None:
        super().__init__(config=config)
        self.requests_per_minute: int = self.get_option("requests_per_minute", 60)
        self.requests_per_hour: int = self.get_option("requests_per_hour", 1000)
        self.burst_limit: int = self.get_option("burst_limit", 10)
        self.key_generator: KeyGenerator = self.get_option("key_generator", default_rate_limit_key)
        self._clock: Callable[[], float] = self.get_option("clock", time.monotonic)
        self._limits: dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()
        self._logger = get_logger("orchestration.plugins.rate_limiter")

    async def before_agent_execution(self, invocation: AgentInvocation) -> AgentInvocation:
        key = self.key_generator(invocation.agent_id, invocation.context)

        async with self._lock:
            if not self._check(key):
                self._logger.warning("rate_limit_exceeded", key=key)
                raise RateLimitExceededError(key)
            entry = self._limits[key]
            entry.count += 1
            entry.burst_count += 1

        return invocation

    def _check(self, key: str) -> bool:
        now = self._clock()
        entry = self._limits.setdefault(key, self._new_entry(now))

        if now < entry.burst_reset_at:
            if entry.burst_count >= self.burst_limit:
                return False
        else:
            entry.burst_count = 0
            entry.burst_reset_at = now + BURST_WINDOW_SECONDS

        if now < entry.reset_at:
            if entry.count >= self.requests_per_hour:
                return False
        else:
            entry.count = 0
            entry.reset_at = now + HOURLY_WINDOW_SECONDS

        return True

    @staticmethod
    def _new_entry(now: float) -> RateLimitEntry:
        return RateLimitEntry(
            count=0,
            reset_at=now + HOURLY_WINDOW_SECONDS,
            burst_count=0,
            burst_reset_at=now + BURST_WINDOW_SECONDS,
        )

    def get_remaining_requests(self, key: str) -> dict[str, int]:
        entry = self._limits.get(key)
        if entry is None:
            return {"hourly": self.requests_per_hour, "burst": self.burst_limit}

        now = self._clock()
        return {
            "hourly": self.requests_per_hour if now >= entry.reset_at else self.requests_per_hour - entry.count,
            "burst": self.burst_limit if now >= entry.burst_reset_at else self.burst_limit - entry.burst_count,
        }

    def prune_expired(self) -> int:
        """Drop keys whose windows have both expired."""
        now = self._clock()
        expired = [
            key for key, entry in self._limits.items()
            if now >= entry.reset_at and now >= entry.burst_reset_at
        ]
        for key in expired:
            del self._limits[key]
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        active = sum(1 for entry in self._limits.values() if now < entry.reset_at or now < entry.burst_reset_at)
        return {
            "total_keys": len(self._limits),
            "active_keys": active,
            "requests_per_minute": self.requests_per_minute,
        }

    async def cleanup(self) -> None:
        self._limits.clear()
