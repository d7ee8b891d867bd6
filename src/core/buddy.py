"""Binary buddy system.

Free blocks are kept in one list per order (block size = 2**order). A
request is rounded up to the next power of two; larger blocks are split in
half until the requested order is reached, each split pushing its upper
half onto the free list of the smaller order. On release a block is merged
with its buddy (address XOR 2**order) for as long as the buddy is free.

The free lists are LIFO: the most recently pushed block of an order is the
first one handed out.
"""
import logging
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


def order_for(size: int) -> int:
    """Smallest order k with 2**k >= size."""
    return max(0, (size - 1).bit_length())


class BuddyRecord(NamedTuple):
    """Live buddy allocation: reserved order and the size actually asked for."""
    order: int
    requested: int

    @property
    def reserved(self) -> int:
        return 1 << self.order


class BuddySystem:
    def __init__(self, total_memory: int):
        self.total_memory = total_memory
        self.max_order = order_for(total_memory)
        self.free_lists: List[List[int]] = [[] for _ in range(self.max_order + 1)]
        self.free_lists[self.max_order].append(0)
        # start address -> record
        self.allocated: Dict[int, BuddyRecord] = {}

    def allocate(self, size: int) -> Optional[int]:
        """Reserve a block for `size` bytes. Returns its start address or None."""
        order = order_for(size)
        cur = order
        while cur <= self.max_order and not self.free_lists[cur]:
            cur += 1
        if cur > self.max_order:
            logger.debug("buddy: no free block of order >= %d", order)
            return None

        address = self.free_lists[cur].pop()
        while cur > order:
            cur -= 1
            self.free_lists[cur].append(address + (1 << cur))

        self.allocated[address] = BuddyRecord(order, size)
        logger.debug("buddy: %d bytes -> order %d at 0x%x", size, order, address)
        return address

    def free(self, address: int) -> Optional[BuddyRecord]:
        """Release the block starting at `address`, coalescing with free buddies.

        Returns the released record, or None if nothing is allocated there.
        """
        record = self.allocated.pop(address, None)
        if record is None:
            return None

        order = record.order
        while order < self.max_order:
            buddy = address ^ (1 << order)
            level = self.free_lists[order]
            if buddy not in level:
                break
            level.remove(buddy)
            address = min(address, buddy)
            order += 1
        self.free_lists[order].append(address)
        logger.debug("buddy: released block, coalesced to order %d at 0x%x", order, address)
        return record

    def record(self, address: int) -> Optional[BuddyRecord]:
        return self.allocated.get(address)

    def largest_free(self) -> int:
        for order in range(self.max_order, -1, -1):
            if self.free_lists[order]:
                return 1 << order
        return 0

    def free_blocks(self) -> Iterator[Tuple[int, int]]:
        """(start, size) of every free block, grouped by order."""
        for order, level in enumerate(self.free_lists):
            for address in level:
                yield address, 1 << order

    def blocks(self) -> List[Tuple[int, int, bool]]:
        """Address-ordered (start, size, is_free) view of the whole space."""
        out = [(a, s, True) for a, s in self.free_blocks()]
        out.extend((a, r.reserved, False) for a, r in self.allocated.items())
        out.sort()
        return out
