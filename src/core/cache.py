"""Core cache implementation

One level of a set-associative cache hierarchy.
Behavior:
- Cache is composed of sets; each set has `associativity` ways.
  block_addr = address // block_size
  set_index = block_addr % num_sets
  tag = block_addr // num_sets
- On a miss the address is forwarded to the backing store (next level or
  memory) and the line is filled, evicting a victim picked by the active
  replacement policy when the set is full.
- Lines carry no data; the model only tracks which blocks are resident.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.backing_store import BackingStore
from src.core.config import DEFAULT_POLICY
from src.core.replacement_policies import make_policy
from src.data.stats_export import CacheStatistics

logger = logging.getLogger(__name__)


@dataclass
class CacheLine:
    """container for a cache line (way).

    Fields:
    - valid: whether the line currently holds a block
    - tag: the tag stored in the line
    - last_used / inserted_at: logical timestamps used by LRU / FIFO
    - frequency: hits since the line was filled, used by LFU
    """

    valid: bool = False
    tag: int = 0
    last_used: int = 0
    frequency: int = 0
    inserted_at: int = 0

    def fill(self, tag: int, now: int):
        self.valid = True
        self.tag = tag
        self.inserted_at = now
        self.last_used = now
        self.frequency = 1


class CacheLevel:
    """Set-associative cache level.
    """

    def __init__(
        self,
        cache_size: int,
        block_size: int,
        associativity: int,
        backing: BackingStore,
        policy: str = DEFAULT_POLICY,
    ):
        if cache_size <= 0 or block_size <= 0 or associativity <= 0:
            raise ValueError("cache_size, block_size and associativity must be >= 1")
        if cache_size % block_size != 0:
            raise ValueError("cache_size must be a multiple of block_size")
        if (cache_size // block_size) % associativity != 0:
            raise ValueError("number of blocks must be a multiple of associativity")

        self.cache_size = cache_size
        self.block_size = block_size
        self.associativity = associativity
        self.num_blocks = cache_size // block_size
        self.num_sets = self.num_blocks // associativity
        self.backing = backing

        self.policy = make_policy(policy)
        if self.policy is None:
            raise ValueError(f"unknown replacement policy {policy!r}")

        # num_sets x associativity, every line starts invalid
        self.sets: List[List[CacheLine]] = [
            [CacheLine() for _ in range(associativity)] for _ in range(self.num_sets)
        ]
        self.clock = 0
        self.statistics = CacheStatistics()

    def _decode(self, address: int):
        """Decode address into (set_index, tag)."""
        block_addr = address // self.block_size
        return block_addr % self.num_sets, block_addr // self.num_sets

    def block_range(self, set_index: int, tag: int):
        """Byte range [start, end) of the memory block held by a line."""
        start = (tag * self.num_sets + set_index) * self.block_size
        return start, start + self.block_size

    def access(self, address: int) -> bool:
        """Look `address` up. Returns True on a hit, False on a miss."""
        set_index, tag = self._decode(address)
        cache_set = self.sets[set_index]
        self.clock += 1
        now = self.clock

        for line in cache_set:
            if line.valid and line.tag == tag:
                line.last_used = now
                line.frequency += 1
                self.statistics.record_access(True)
                return True

        self.statistics.record_access(False)
        # result is not needed here; the lower levels keep their own counts
        self.backing.access(address)

        for line in cache_set:
            if not line.valid:
                line.fill(tag, now)
                return False

        way = self.policy.select_victim(cache_set)
        victim = cache_set[way]
        logger.debug("set %d: %s evicts tag %d (way %d) for tag %d",
                     set_index, self.policy.name, victim.tag, way, tag)
        victim.fill(tag, now)
        return False

    def set_policy(self, name: str) -> bool:
        """Switch replacement policy. Unknown names leave the policy unchanged."""
        policy = make_policy(name)
        if policy is None:
            logger.warning("rejected replacement policy %r", name)
            return False
        self.policy = policy
        return True

    def invalidate_range(self, start: int, size: int) -> int:
        """Drop every line whose block overlaps [start, start + size).

        The call is always passed on to the backing store, whether or not
        anything matched here. Returns the number of lines dropped at this level.
        """
        end = start + size
        dropped = 0
        for set_index, cache_set in enumerate(self.sets):
            for line in cache_set:
                if not line.valid:
                    continue
                block_start, block_end = self.block_range(set_index, line.tag)
                if block_start < end and block_end > start:
                    line.valid = False
                    dropped += 1
        if dropped:
            logger.debug("invalidated %d line(s) for [0x%x, 0x%x)", dropped, start, end)
        self.backing.invalidate_range(start, size)
        return dropped

    def lookup(self, address: int) -> Optional[CacheLine]:
        """Resident line for `address`, without touching any state."""
        set_index, tag = self._decode(address)
        for line in self.sets[set_index]:
            if line.valid and line.tag == tag:
                return line
        return None

    def snapshot(self) -> CacheStatistics:
        return self.statistics

    def stats(self, level: int = 1) -> str:
        s = self.statistics
        lines = [
            f"==== Cache L{level} Statistics ====",
            f"Hits          : {s.hits}",
            f"Misses        : {s.misses}",
            f"Hit Ratio     : {s.hit_rate:.4f}",
        ]
        lines.extend(self.backing.stats_lines(level, s.misses))
        return "\n".join(lines)
