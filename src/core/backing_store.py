"""Where a cache level sends its misses.

There are exactly two kinds of backing store, chosen when the chain is
built and never changed afterwards:

- NextLevel(cache): another, larger cache level
- TerminalStore(memory): main memory. Memory holds no real data here, so
  the access is only a validity check against the allocator.

Both expose the same small API:
- access(address) -> bool
- invalidate_range(start, size)
- stats_lines(level, misses) -> list of report lines
"""
from typing import List


class BackingStore:
    def access(self, address: int) -> bool:
        raise NotImplementedError

    def invalidate_range(self, start: int, size: int) -> None:
        raise NotImplementedError

    def stats_lines(self, level: int, misses: int) -> List[str]:
        raise NotImplementedError


class NextLevel(BackingStore):
    def __init__(self, cache):
        self.cache = cache

    def access(self, address: int) -> bool:
        return self.cache.access(address)

    def invalidate_range(self, start: int, size: int) -> None:
        self.cache.invalidate_range(start, size)

    def stats_lines(self, level: int, misses: int) -> List[str]:
        lines = [f"Misses propagated to L{level + 1} : {misses}"]
        lines.append(self.cache.stats(level + 1))
        return lines


class TerminalStore(BackingStore):
    def __init__(self, memory):
        # anything with access(address) -> bool, normally the Allocator
        self.memory = memory
        self.reads = 0

    def access(self, address: int) -> bool:
        self.reads += 1
        return self.memory.access(address)

    def invalidate_range(self, start: int, size: int) -> None:
        # nothing cached below this point
        return None

    def stats_lines(self, level: int, misses: int) -> List[str]:
        return [f"Misses propagated to Memory : {misses}"]
