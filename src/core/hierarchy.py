"""Cache chain construction.

Builds the levels innermost first so that each level can be handed its
backing store at construction time: the last level talks to memory, every
other level to the level right behind it.
"""
from typing import List, Sequence, Union, Tuple

from src.core.backing_store import NextLevel, TerminalStore
from src.core.cache import CacheLevel
from src.core.config import CacheLevelConfig
from src.data.stats_export import CacheStatistics

LevelSpec = Union[CacheLevelConfig, Tuple[int, int, int]]


class CacheChain:
    def __init__(self, levels: Sequence[LevelSpec], memory):
        if not levels:
            raise ValueError("at least one cache level is required")
        configs = [lvl if isinstance(lvl, CacheLevelConfig) else CacheLevelConfig(*lvl) for lvl in levels]

        self.memory = TerminalStore(memory)
        backing = self.memory
        built: List[CacheLevel] = []
        for cfg in reversed(configs):
            level = CacheLevel(cfg.cache_size, cfg.block_size, cfg.associativity, backing, policy=cfg.policy)
            built.append(level)
            backing = NextLevel(level)
        # outermost (L1) first
        self.levels = built[::-1]

    def __len__(self):
        return len(self.levels)

    def level(self, index: int) -> CacheLevel:
        return self.levels[index]

    def set_policy(self, level_index: int, name: str) -> bool:
        if not 0 <= level_index < len(self.levels):
            return False
        return self.levels[level_index].set_policy(name)

    def access(self, address: int) -> bool:
        return self.levels[0].access(address)

    def invalidate_range(self, start: int, size: int) -> None:
        self.levels[0].invalidate_range(start, size)

    def snapshot(self) -> List[CacheStatistics]:
        return [lvl.snapshot() for lvl in self.levels]

    def stats(self) -> str:
        return self.levels[0].stats(1)
