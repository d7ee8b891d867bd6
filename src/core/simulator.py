"""MemorySystem owns one simulation session: an allocator plus the cache
chain in front of it. Every successful allocation is pushed into the chain
as an invalidation so no level keeps a stale line for reused addresses.
"""
import logging
from typing import Callable, List, Optional

from src.core.allocator import Allocator, FAIL
from src.core.config import SystemConfig
from src.core.hierarchy import CacheChain

logger = logging.getLogger(__name__)


class MemorySystem:
    def __init__(self, config: SystemConfig):
        self.reinitialize(config)

    def reinitialize(self, config: SystemConfig):
        """Throw the current session away and build a fresh one from `config`."""
        self.config = config
        self.allocator = Allocator(config.total_memory, config.strategy)
        self.caches = CacheChain(config.levels, self.allocator)
        self.hit_rate_history: List[float] = []
        self.sequence: List[int] = []
        self.index = 0
        logger.debug("session initialised: %r", config)

    # --- allocator side -------------------------------------------------

    def malloc(self, size: int) -> int:
        alloc_id = self.allocator.allocate(size)
        if alloc_id != FAIL:
            granted = self.allocator.last_allocation()
            if granted is not None:
                self.caches.invalidate_range(*granted)
        return alloc_id

    def free(self, alloc_id: int) -> bool:
        return self.allocator.free(alloc_id)

    def set_strategy(self, name: str) -> bool:
        return self.allocator.configure(name)

    def dump(self) -> str:
        return self.allocator.dump()

    def memory_stats(self) -> str:
        return self.allocator.stats()

    # --- cache side -----------------------------------------------------

    def set_policy(self, level_index: int, name: str) -> bool:
        return self.caches.set_policy(level_index, name)

    def access(self, address: int) -> bool:
        hit = self.caches.access(address)
        self.hit_rate_history.append(self.caches.level(0).statistics.hit_rate)
        return hit

    def cache_stats(self) -> str:
        return self.caches.stats()

    # --- trace replay ---------------------------------------------------

    def load_sequence(self, addresses: List[int]):
        self.sequence = list(addresses)
        self.index = 0

    def has_next(self) -> bool:
        return self.index < len(self.sequence)

    def step(self) -> Optional[dict]:
        if not self.has_next():
            return None
        address = self.sequence[self.index]
        self.index += 1
        hit = self.access(address)
        return {
            'address': address,
            'hit': hit,
            'levels': [s.as_dict() for s in self.caches.snapshot()],
            'memory_reads': self.caches.memory.reads,
        }

    def run_all(self, callback: Optional[Callable[[dict], None]] = None):
        while self.has_next():
            info = self.step()
            if callback:
                callback(info)

    def summary(self) -> dict:
        return {
            'memory': self.allocator.snapshot().as_dict(),
            'caches': [s.as_dict() for s in self.caches.snapshot()],
            'memory_reads': self.caches.memory.reads,
        }
