"""Replacement policy implementations for the cache levels.

Each policy is a small stateless object with one method:

- select_victim(lines): return the way index to evict from a full set

The bookkeeping (insertion time, last use, use count) lives on the cache
lines themselves, so a level can switch policy at any time without losing
history. Ties go to the lowest way index.
"""

from typing import Optional, Sequence


class ReplacementPolicy:
    name = ""

    def key(self, line):
        raise NotImplementedError

    def select_victim(self, lines: Sequence) -> int:
        victim = 0
        for way in range(1, len(lines)):
            # strict < keeps the first-encountered line on ties
            if self.key(lines[way]) < self.key(lines[victim]):
                victim = way
        return victim


class FIFOReplacement(ReplacementPolicy):
    """Evict the line filled longest ago."""
    name = "fifo"

    def key(self, line):
        return line.inserted_at


class LRUReplacement(ReplacementPolicy):
    """Evict the line whose last use is oldest."""
    name = "lru"

    def key(self, line):
        return line.last_used


class LFUReplacement(ReplacementPolicy):
    """Evict the line with the fewest uses since it was filled."""
    name = "lfu"

    def key(self, line):
        return line.frequency


POLICIES = {cls.name: cls for cls in (FIFOReplacement, LRUReplacement, LFUReplacement)}


def make_policy(name: str) -> Optional[ReplacementPolicy]:
    cls = POLICIES.get(name)
    return cls() if cls is not None else None


__all__ = ["ReplacementPolicy", "FIFOReplacement", "LRUReplacement", "LFUReplacement", "POLICIES", "make_policy"]
