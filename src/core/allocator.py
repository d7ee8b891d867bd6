"""Dynamic memory allocator over a fixed linear address space.

Behavior:
- The space [0, total_memory) is tracked as a chain of extents, each either
  free or owned by one allocation id. The chain is kept in address order and
  always covers the whole space exactly.
- first_fit / best_fit / worst_fit pick a free extent from the chain and
  split it; buddy delegates to `BuddySystem`.
- Failures are reported with the FAIL sentinel (allocate) or False (free),
  never by raising.

Extents live in an arena (`self._slots`) and link to each other by slot
index, so split and merge are plain index splicing.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from src.core.buddy import BuddySystem
from src.core.config import STRATEGY_NAMES, DEFAULT_STRATEGY
from src.data.stats_export import AllocationStatistics

logger = logging.getLogger(__name__)

FAIL = -1
FREE_ID = -1


@dataclass
class Extent:
    """A contiguous run of address space.

    Fields:
    - start / size: the covered byte range
    - id: owning allocation id, FREE_ID when free
    - is_free: whether the extent is available
    - next / prev: arena slot indices of the neighbours (None at the ends)
    """

    start: int
    size: int
    id: int = FREE_ID
    is_free: bool = True
    next: Optional[int] = None
    prev: Optional[int] = None

    @property
    def end(self) -> int:
        return self.start + self.size


class Allocator:
    """Allocator with selectable strategy.
    """

    def __init__(self, total_memory: int, strategy: str = DEFAULT_STRATEGY):
        if total_memory <= 0:
            raise ValueError("total_memory must be positive")
        self.total_memory = total_memory
        self.strategy = DEFAULT_STRATEGY
        self.configure(strategy)

        self._slots: List[Optional[Extent]] = [Extent(0, total_memory)]
        self._vacant: List[int] = []
        self._head = 0

        self.buddy = BuddySystem(total_memory)
        # allocation id -> buddy block start address
        self._buddy_ids = {}

        self._next_id = 1
        self._last_allocation: Optional[Tuple[int, int]] = None

        self.used_memory = 0
        self.internal_fragmentation = 0
        self.attempts = 0
        self.failures = 0
        self.memory_reads = 0

    # --- arena helpers -------------------------------------------------

    def _new_slot(self, extent: Extent) -> int:
        if self._vacant:
            idx = self._vacant.pop()
            self._slots[idx] = extent
        else:
            idx = len(self._slots)
            self._slots.append(extent)
        return idx

    def _split(self, idx: int, need: int):
        """Shrink extent `idx` to `need` bytes; the rest becomes a free extent after it."""
        ext = self._slots[idx]
        rest = Extent(ext.start + need, ext.size - need, next=ext.next, prev=idx)
        rest_idx = self._new_slot(rest)
        if ext.next is not None:
            self._slots[ext.next].prev = rest_idx
        ext.next = rest_idx
        ext.size = need

    def _merge_next(self, idx: int):
        """Absorb the extent following `idx` into it."""
        ext = self._slots[idx]
        nxt_idx = ext.next
        nxt = self._slots[nxt_idx]
        ext.size += nxt.size
        ext.next = nxt.next
        if nxt.next is not None:
            self._slots[nxt.next].prev = idx
        self._slots[nxt_idx] = None
        self._vacant.append(nxt_idx)

    def _walk(self) -> Iterator[Tuple[int, Extent]]:
        idx = self._head
        while idx is not None:
            ext = self._slots[idx]
            yield idx, ext
            idx = ext.next

    def extents(self) -> List[Extent]:
        """Address-ordered copy of the extent chain."""
        return [Extent(e.start, e.size, e.id, e.is_free) for _, e in self._walk()]

    # --- configuration -------------------------------------------------

    def configure(self, strategy: str) -> bool:
        if strategy not in STRATEGY_NAMES:
            logger.warning("rejected allocation strategy %r", strategy)
            return False
        self.strategy = strategy
        return True

    # --- allocation ----------------------------------------------------

    def _first_fit(self, need: int) -> Optional[int]:
        for idx, ext in self._walk():
            if ext.is_free and ext.size >= need:
                return idx
        return None

    def _best_fit(self, need: int) -> Optional[int]:
        best = None
        for idx, ext in self._walk():
            if ext.is_free and ext.size >= need:
                if best is None or ext.size < self._slots[best].size:
                    best = idx
        return best

    def _worst_fit(self, need: int) -> Optional[int]:
        worst = None
        for idx, ext in self._walk():
            if ext.is_free and ext.size >= need:
                if worst is None or ext.size > self._slots[worst].size:
                    worst = idx
        return worst

    def _grant(self, idx: int, need: int) -> int:
        ext = self._slots[idx]
        if ext.size != need:
            self._split(idx, need)
        alloc_id = self._next_id
        self._next_id += 1
        ext.id = alloc_id
        ext.is_free = False
        self.used_memory += need
        self._last_allocation = (ext.start, need)
        return alloc_id

    def _buddy_allocate(self, size: int) -> int:
        address = self.buddy.allocate(size)
        if address is None:
            return FAIL
        record = self.buddy.record(address)
        alloc_id = self._next_id
        self._next_id += 1
        self._buddy_ids[alloc_id] = address
        self.used_memory += record.reserved
        self.internal_fragmentation += record.reserved - size
        self._last_allocation = (address, record.reserved)
        return alloc_id

    def allocate(self, size: int) -> int:
        """Allocate `size` bytes. Returns a positive allocation id or FAIL."""
        if size <= 0:
            logger.debug("rejected non-positive allocation size %d", size)
            return FAIL

        self.attempts += 1
        self._last_allocation = None

        if self.strategy == "buddy":
            alloc_id = self._buddy_allocate(size)
        else:
            if self.strategy == "first_fit":
                idx = self._first_fit(size)
            elif self.strategy == "best_fit":
                idx = self._best_fit(size)
            else:
                idx = self._worst_fit(size)
            alloc_id = FAIL if idx is None else self._grant(idx, size)

        if alloc_id == FAIL:
            self.failures += 1
            logger.debug("%s: allocation of %d bytes failed", self.strategy, size)
        else:
            logger.debug("%s: id=%d -> %r", self.strategy, alloc_id, self._last_allocation)
        return alloc_id

    def last_allocation(self) -> Optional[Tuple[int, int]]:
        """(start, size) granted by the most recent allocate call.

        None when that call failed or no allocation has happened yet.
        """
        return self._last_allocation

    # --- release -------------------------------------------------------

    def free(self, alloc_id: int) -> bool:
        if self.strategy == "buddy":
            return self._buddy_free(alloc_id)

        prev_idx = None
        for idx, ext in self._walk():
            if not ext.is_free and ext.id == alloc_id:
                self.used_memory -= ext.size
                ext.is_free = True
                ext.id = FREE_ID
                if ext.next is not None and self._slots[ext.next].is_free:
                    self._merge_next(idx)
                if prev_idx is not None and self._slots[prev_idx].is_free:
                    self._merge_next(prev_idx)
                logger.debug("freed id=%d", alloc_id)
                return True
            prev_idx = idx
        return False

    def _buddy_free(self, alloc_id: int) -> bool:
        address = self._buddy_ids.get(alloc_id)
        if address is None:
            return False
        record = self.buddy.free(address)
        del self._buddy_ids[alloc_id]
        self.used_memory -= record.reserved
        self.internal_fragmentation -= record.reserved - record.requested
        return True

    # --- memory reads & reporting --------------------------------------

    def access(self, address: int) -> bool:
        """Validity check used as the end of the cache chain. Always valid."""
        self.memory_reads += 1
        return True

    def largest_free(self) -> int:
        if self.strategy == "buddy":
            return self.buddy.largest_free()
        return max((e.size for _, e in self._walk() if e.is_free), default=0)

    def snapshot(self) -> AllocationStatistics:
        return AllocationStatistics(
            total_memory=self.total_memory,
            used_memory=self.used_memory,
            largest_free=self.largest_free(),
            internal_fragmentation=self.internal_fragmentation,
            attempts=self.attempts,
            failures=self.failures,
        )

    def dump(self) -> str:
        if self.strategy == "buddy":
            owners = {addr: i for i, addr in self._buddy_ids.items()}
            rows = [(start, size, owners.get(start, FREE_ID), free) for start, size, free in self.buddy.blocks()]
        else:
            rows = [(e.start, e.size, e.id, e.is_free) for _, e in self._walk()]

        lines = []
        for start, size, alloc_id, free in rows:
            state = "FREE" if free else f"Used (id={alloc_id})"
            lines.append(f"[0x{start:x} - 0x{start + size - 1:x}] {state}")
        return "\n".join(lines)

    def stats(self) -> str:
        s = self.snapshot()
        return "\n".join([
            "==== Memory Statistics ====",
            f"Total memory           : {s.total_memory}",
            f"Used memory            : {s.used_memory}",
            f"Free memory            : {s.free_memory}",
            f"Largest free block     : {s.largest_free}",
            f"Memory Utilization     : {s.utilization:.4f}",
            f"Internal fragmentation : {s.internal_fragmentation_ratio:.4f}",
            f"External fragmentation : {s.external_fragmentation:.4f}",
            f"Total allocations      : {s.attempts}",
            f"Successful allocations : {s.successes}",
            f"Failed allocations     : {s.failures}",
            f"Success rate           : {s.success_rate:.4f}",
            f"Failed rate            : {s.failure_rate:.4f}",
        ])
