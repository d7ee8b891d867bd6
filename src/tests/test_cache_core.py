"""Unit tests for a single cache level.

These tests focus on the CacheLevel core (no console). They cover:

- address decomposition and miss/hit sequencing
- filling invalid ways before evicting
- range invalidation and its reconstruction of block addresses
- forwarding of misses to the backing store
- hit ratio bookkeeping and the text report

The backing store is a TerminalStore over a tiny fake memory so every
forwarded miss can be counted.
"""

import pytest
from src.core.backing_store import TerminalStore
from src.core.cache import CacheLevel, CacheLine


class FakeMemory:
    """Always-valid memory that remembers which addresses it was asked for."""
    def __init__(self):
        self.seen = []

    def access(self, address):
        self.seen.append(address)
        return True


def _level(cache_size=64, block_size=16, associativity=2, policy='fifo'):
    mem = FakeMemory()
    return CacheLevel(cache_size, block_size, associativity, TerminalStore(mem), policy=policy), mem


def test_geometry_and_decode():
    # Input: CacheLevel(64, 16, 2). Expected: 4 blocks, 2 sets; address 32 is
    # block 2 -> set 0, tag 1; address 16 is block 1 -> set 1, tag 0.
    c, _ = _level()
    assert c.num_blocks == 4
    assert c.num_sets == 2
    assert c._decode(32) == (0, 1)
    assert c._decode(16) == (1, 0)
    assert c._decode(47) == (0, 1)
    assert c.block_range(0, 1) == (32, 48)


def test_all_lines_start_invalid():
    c, _ = _level(cache_size=128, block_size=8, associativity=4)
    assert len(c.sets) == 4
    for s in c.sets:
        assert len(s) == 4
        assert all(line == CacheLine() for line in s)


@pytest.mark.parametrize('cache_size,block_size,assoc', [
    (0, 16, 2),
    (64, 0, 2),
    (64, 16, 0),
    (64, 24, 1),
    (64, 16, 3),
])
def test_invalid_geometry_rejected(cache_size, block_size, assoc):
    with pytest.raises(ValueError):
        _level(cache_size, block_size, assoc)


def test_unknown_initial_policy_rejected():
    with pytest.raises(ValueError):
        _level(policy='random')


def test_example_sequence_fifo():
    # Input: CacheLevel(64, 16, 2) with FIFO. Accesses 0, 0, 16, 32, then 64.
    # Expected: miss, hit, miss, miss, miss; 0 and 32 share set 0, and 64 is
    # the third distinct tag there, so FIFO drops the line filled first (0).
    c, _ = _level()
    assert c.access(0) is False
    assert c.access(0) is True
    assert c.access(16) is False
    assert c.access(32) is False
    assert c.access(64) is False
    assert c.lookup(0) is None
    assert c.lookup(32) is not None
    assert c.lookup(64) is not None
    assert c.access(0) is False


def test_miss_then_hit_within_block():
    # any two addresses inside the same block share a line
    c, _ = _level()
    assert c.access(5) is False
    assert c.access(15) is True
    assert c.access(16) is False


def test_fill_uses_invalid_way_before_evicting():
    c, _ = _level(cache_size=64, block_size=16, associativity=4)
    # single set, four ways
    for k in range(4):
        assert c.access(k * 16) is False
    tags = sorted(line.tag for line in c.sets[0] if line.valid)
    assert tags == [0, 1, 2, 3]
    # drop one line, next miss must land in that hole without evicting
    c.invalidate_range(32, 1)
    assert c.access(64) is False
    assert sorted(line.tag for line in c.sets[0] if line.valid) == [0, 1, 3, 4]


def test_line_bookkeeping_on_hit_and_fill():
    c, _ = _level()
    c.access(0)
    line = c.lookup(0)
    assert (line.valid, line.tag, line.frequency) == (True, 0, 1)
    assert line.inserted_at == line.last_used == 1
    c.access(16)
    c.access(0)
    assert line.frequency == 2
    assert line.last_used == 3
    assert line.inserted_at == 1


def test_miss_forwards_to_backing_store():
    c, mem = _level()
    c.access(0)
    c.access(0)
    c.access(40)
    assert mem.seen == [0, 40]
    assert c.backing.reads == 2


def test_invalidate_range_overlap():
    # Input: lines for blocks [0,16), [16,32), [32,48). Invalidate [10, 20).
    # Expected: the first two overlap and are dropped; [32,48) survives.
    c, _ = _level(cache_size=128, block_size=16, associativity=2)
    for a in (0, 16, 32):
        c.access(a)
    assert c.invalidate_range(10, 10) == 2
    assert c.lookup(0) is None
    assert c.lookup(16) is None
    assert c.lookup(32) is not None
    assert c.access(0) is False


def test_invalidate_range_boundaries_are_half_open():
    c, _ = _level()
    c.access(16)
    # [0,16) ends exactly where the block starts, [32,48) starts where it ends
    assert c.invalidate_range(0, 16) == 0
    assert c.invalidate_range(32, 16) == 0
    assert c.invalidate_range(31, 1) == 1


def test_invalidated_line_refills():
    c, _ = _level()
    c.access(0)
    c.invalidate_range(0, 1)
    assert c.access(0) is False
    assert c.access(0) is True


def test_hit_ratio_exact():
    c, _ = _level()
    assert c.statistics.hit_rate == 0.0
    for a in (0, 0, 0, 16):
        c.access(a)
    assert c.statistics.hits == 2
    assert c.statistics.misses == 2
    assert c.statistics.hit_rate == 2 / 4


def test_stats_report_terminal_level():
    c, _ = _level()
    c.access(0)
    c.access(0)
    report = c.stats(2)
    assert report.splitlines()[0] == '==== Cache L2 Statistics ===='
    assert 'Hits          : 1' in report
    assert 'Misses        : 1' in report
    assert 'Hit Ratio     : 0.5000' in report
    assert report.splitlines()[-1] == 'Misses propagated to Memory : 1'


def test_stats_before_any_access():
    c, _ = _level()
    assert 'Hit Ratio     : 0.0000' in c.stats()


def test_randomized_small_stress():
    # Input: CacheLevel(256, 8, 4) with LRU. 300 random addresses in [0, 1023].
    # Expected: no set ever holds two valid lines with the same tag, and the
    # counters add up to the number of accesses.
    """A small randomized access sequence to exercise corner cases quickly."""
    import random

    rng = random.Random(7)
    c, mem = _level(cache_size=256, block_size=8, associativity=4, policy='lru')
    for _ in range(300):
        c.access(rng.randint(0, 1023))
        if rng.random() < 0.05:
            c.invalidate_range(rng.randint(0, 1023), rng.randint(1, 64))
        for s in c.sets:
            tags = [line.tag for line in s if line.valid]
            assert len(tags) == len(set(tags))
    assert c.statistics.accesses == 300
    assert len(mem.seen) == c.statistics.misses
