"""Response cache for agent executions."""

import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from orchestration.plugins.base import AgentInvocation, BasePlugin, PluginConfig, PluginMetadata

if TYPE_CHECKING:
    from orchestration.agent import AgentResult

KeyGenerator = Callable[[str, str], str]

CACHED_FLAG = "_cached"


@dataclass
class _CacheEntry:
    value: "AgentResult"
    stored_at: float


def default_cache_key(agent_id: str, prompt: str) -> str:
    digest = hashlib.sha256(f"{agent_id}{prompt}".encode("utf-8")).hexdigest()
    return f"agent:{agent_id}:{digest}"


class CachePlugin(BasePlugin):
    """Serves repeated (agent, prompt) invocations from memory.

    Options:
        max_size: Entry cap; the oldest inserted entry is evicted first (1000)
        ttl_ms: Entry lifetime (300000)
        key_generator: ``(agent_id, prompt) -> key``
        clock: Monotonic clock in seconds
    """

    metadata = PluginMetadata(
        name="cache",
        version="1.0.0",
        description="Caches agent responses to improve performance",
        keywords=("cache", "performance"),
    )

    def __init__(self, config: PluginConfig | None = None) -> None:
        super().__init__(config=config)
        self.max_size: int = self.get_option("max_size", 1000)
        self.ttl_ms: int = self.get_option("ttl_ms", 300_000)
        self.key_generator: KeyGenerator = self.get_option("key_generator", default_cache_key)
        self._clock: Callable[[], float] = self.get_option("clock", time.monotonic)
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0

    async def before_agent_execution(self, invocation: AgentInvocation) -> AgentInvocation:
        cached = self.get(self.key_generator(invocation.agent_id, invocation.prompt))
        if cached is None:
            self.misses += 1
            return invocation

        self.hits += 1
        invocation.cached_result = cached
        invocation.context.metadata[CACHED_FLAG] = True
        return invocation

    async def after_agent_execution(self, result: "AgentResult", invocation: AgentInvocation) -> "AgentResult":
        if not result.cached:
            self.set(self.key_generator(invocation.agent_id, invocation.prompt), result)
        return result

    def get(self, key: str) -> "AgentResult | None":
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: "AgentResult") -> None:
        self.prune_expired()
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = _CacheEntry(value=value, stored_at=self._clock())

    def prune_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _expired(self, entry: _CacheEntry, now: float) -> bool:
        return (now - entry.stored_at) * 1000 > self.ttl_ms

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }

    async def cleanup(self) -> None:
        self.clear()
