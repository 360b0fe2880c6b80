from collections import OrderedDict
from typing import Generic, Optional, TypeVar

from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class EvaluationCache(Generic[T]):
    """
    Bounded LRU cache of evaluation outcomes keyed by parameter-set content hash.

    Owned by one orchestrator; only the orchestrator thread reads or writes
    it, so no locking is needed.
    """

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: "OrderedDict[str, T]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[T]:
        """Look up a key, counting the hit or miss."""
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def put(self, key: str, value: T):
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted[:12]}")

    def record_hit(self):
        """Count a lookup answered without touching the store (duplicate inside one batch)."""
        self.hits += 1

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def clear(self):
        self._entries.clear()
        self.hits = 0
        self.misses = 0
