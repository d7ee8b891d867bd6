"""Extended tests for replacement policies across sets and block sizes.

These tests programmatically exercise FIFO, LRU and LFU with multiple
`cache_size`, `associativity` and `block_size` combinations to ensure
eviction behavior is correct when sets have to evict a way.
"""

from src.core.backing_store import TerminalStore
from src.core.cache import CacheLevel


class AlwaysValid:
    def access(self, address):
        return True


def _fill_and_evict(cache: CacheLevel, target_set: int = 0):
    """Fill a single set completely, then access a new tag mapping to same set
    to trigger an eviction. Returns the evicted tag.
    """
    assoc = cache.associativity
    num_sets = cache.num_sets
    block_size = cache.block_size

    # addresses mapping to target_set: block_addr = target_set + k * num_sets
    addrs = [(target_set + k * num_sets) * block_size for k in range(assoc)]

    # fill all ways; tags are 0..assoc-1
    for a in addrs:
        assert cache.access(a) is False

    # touch the first tag to change recency / frequency
    assert cache.access(addrs[0]) is True

    # a *new* block that maps to the same set with tag = assoc
    new_addr = (target_set + assoc * num_sets) * block_size
    assert cache.access(new_addr) is False

    resident = {line.tag for line in cache.sets[target_set] if line.valid}
    missing = set(range(assoc + 1)) - resident
    assert len(missing) == 1
    return missing.pop()


def test_policies_various_configs():
    policies = ['fifo', 'lru', 'lfu']
    cache_sizes = [64, 128, 256]
    assoc_choices = [1, 2, 4, 8]
    block_sizes = [4, 8, 16]

    for size in cache_sizes:
        for bs in block_sizes:
            blocks = size // bs
            for assoc in assoc_choices:
                if assoc > blocks or blocks % assoc != 0:
                    continue
                for policy in policies:
                    for target in {0, blocks // assoc - 1}:
                        c = CacheLevel(size, bs, assoc, TerminalStore(AlwaysValid()), policy=policy)
                        evicted = _fill_and_evict(c, target_set=target)
                        if policy == 'fifo' or assoc == 1:
                            # first inserted, or the only way there is
                            expected = 0
                        else:
                            # tag 0 was touched last and used twice: tag 1 is
                            # both least recent and the first least frequent
                            expected = 1
                        assert evicted == expected, (
                            f"{policy} evicted {evicted}, expected {expected} "
                            f"(size={size}, bs={bs}, a={assoc}, set={target})"
                        )
