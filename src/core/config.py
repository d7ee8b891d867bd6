"""Configuration objects for the memory hierarchy.

The console builds a `SystemConfig` from user input and hands it to
`MemorySystem`. All geometry checks happen here, so the core classes can
assume sane values.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

STRATEGY_NAMES = ("first_fit", "best_fit", "worst_fit", "buddy")
POLICY_NAMES = ("fifo", "lru", "lfu")
DEFAULT_STRATEGY = "first_fit"
DEFAULT_POLICY = "fifo"


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class CacheLevelConfig:
    """Geometry of one cache level.

    Fields:
    - cache_size: capacity in bytes
    - block_size: bytes per line
    - associativity: lines per set
    - policy: initial replacement policy name
    """

    cache_size: int
    block_size: int
    associativity: int
    policy: str = DEFAULT_POLICY

    def __post_init__(self):
        for name in ("cache_size", "block_size", "associativity"):
            value = getattr(self, name)
            if not is_power_of_two(value):
                raise ValueError(f"{name} must be a positive power of two, got {value}")
        if self.cache_size % self.block_size != 0:
            raise ValueError("cache_size must be a multiple of block_size")
        if (self.cache_size // self.block_size) % self.associativity != 0:
            raise ValueError("number of blocks must be a multiple of associativity")
        if self.policy not in POLICY_NAMES:
            raise ValueError(f"unknown replacement policy {self.policy!r}")

    @property
    def num_sets(self) -> int:
        return (self.cache_size // self.block_size) // self.associativity


# L1 then L2, outermost first
DEFAULT_LEVELS: Tuple[CacheLevelConfig, ...] = (
    CacheLevelConfig(cache_size=64, block_size=16, associativity=2),
    CacheLevelConfig(cache_size=256, block_size=16, associativity=4),
)


@dataclass(frozen=True)
class SystemConfig:
    total_memory: int
    strategy: str = DEFAULT_STRATEGY
    levels: Tuple[CacheLevelConfig, ...] = DEFAULT_LEVELS

    def __post_init__(self):
        if self.total_memory <= 0:
            raise ValueError("Size must be positive")
        if self.strategy not in STRATEGY_NAMES:
            raise ValueError(f"unknown allocation strategy {self.strategy!r}")
        if self.strategy == "buddy" and not is_power_of_two(self.total_memory):
            raise ValueError("buddy allocation requires memory size to be a power of two")
        if not self.levels:
            raise ValueError("at least one cache level is required")
        # each level strictly smaller than the one behind it, and than memory
        bounds = [lvl.cache_size for lvl in self.levels] + [self.total_memory]
        for i, lvl in enumerate(self.levels):
            if lvl.cache_size >= bounds[i + 1]:
                behind = f"L{i + 2}" if i + 1 < len(self.levels) else "memory"
                raise ValueError(f"L{i + 1} size {lvl.cache_size} must be smaller than {behind} ({bounds[i + 1]})")


def resolve_strategy(total_memory: int, requested: Optional[str]) -> Tuple[str, Optional[str]]:
    """Pick the strategy a new session actually starts with.

    Returns (strategy, notice). `notice` is a user-facing message when the
    request had to fall back to first_fit, else None.
    """
    if requested is None:
        return DEFAULT_STRATEGY, None
    if requested not in STRATEGY_NAMES:
        logger.warning("unknown strategy %r, falling back to %s", requested, DEFAULT_STRATEGY)
        return DEFAULT_STRATEGY, "Invalid allocation type, using first_fit"
    if requested == "buddy" and not is_power_of_two(total_memory):
        logger.warning("buddy requested for %d bytes (not a power of two), falling back", total_memory)
        return DEFAULT_STRATEGY, (
            "Unable to set buddy. Buddy allocator requires memory to be of form 2^x, using first_fit"
        )
    return requested, None
