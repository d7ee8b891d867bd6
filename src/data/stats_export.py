"""Statistics and exporter.
"""
import csv
import json
import logging
from dataclasses import dataclass, asdict
from typing import List, Dict, Optional

logger = logging.getLogger(__name__)


def export_chart_json(hit_rate_history: List[float], stats: Dict[str, object], fpath: str) -> Optional[str]:
    """Export hit-rate history and stats to a JSON file. Returns saved path or None.
    """
    data = {
        'hit_rate_history': list(hit_rate_history),
        'stats': stats
    }
    try:
        with open(fpath, 'w', encoding='utf-8') as fh:
            json.dump(data, fh, indent=2)
    except OSError:
        logger.exception("could not write %s", fpath)
        return None
    return fpath


def export_chart_pdf(hit_rate_history: List[float], fpath: str) -> Optional[str]:
    """Render the L1 hit-rate history to a PDF using matplotlib and save it.
    Returns the saved file path or None on failure.
    """
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    data = list(hit_rate_history) or [0]
    fig, ax = plt.subplots(figsize=(6, 2))
    ax.plot(range(len(data)), data, color='#FFA500', linewidth=2)
    ax.fill_between(range(len(data)), data, color='#FFA500', alpha=0.1)
    ax.set_ylim(0, 1)
    ax.set_xlabel('Access')
    ax.set_ylabel('L1 hit ratio')
    ax.grid(False)
    fig.tight_layout()
    try:
        fig.savefig(fpath, format='pdf', dpi=150)
    except OSError:
        logger.exception("could not write %s", fpath)
        return None
    finally:
        plt.close(fig)
    return fpath


class CacheStatistics:
    """Hit/miss counters of a single cache level."""

    def __init__(self):
        self.reset()

    def reset(self):
        # counters start from zero
        self.hits = 0
        self.misses = 0

    def record_access(self, hit: bool):
        if hit:
            self.hits += 1
        else:
            self.misses += 1

    @property
    def accesses(self):
        return self.hits + self.misses

    @property
    def hit_rate(self):
        return (self.hits / self.accesses) if self.accesses else 0.0

    @property
    def miss_rate(self):
        return (self.misses / self.accesses) if self.accesses else 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hit_rate,
            'miss_rate': self.miss_rate,
        }


@dataclass
class AllocationStatistics:
    """Point-in-time view of the allocator counters.

    The ratios are derived so a snapshot is self-consistent even when
    exported on its own.
    """

    total_memory: int
    used_memory: int
    largest_free: int
    internal_fragmentation: int
    attempts: int
    failures: int

    @property
    def free_memory(self) -> int:
        return self.total_memory - self.used_memory

    @property
    def utilization(self) -> float:
        return self.used_memory / self.total_memory

    @property
    def internal_fragmentation_ratio(self) -> float:
        return (self.internal_fragmentation / self.used_memory) if self.used_memory else 0.0

    @property
    def external_fragmentation(self) -> float:
        if self.free_memory == 0:
            return 0.0
        return 1 - self.largest_free / self.free_memory

    @property
    def successes(self) -> int:
        return self.attempts - self.failures

    @property
    def success_rate(self) -> float:
        return (self.successes / self.attempts) if self.attempts else 0.0

    @property
    def failure_rate(self) -> float:
        return (self.failures / self.attempts) if self.attempts else 0.0

    def as_dict(self) -> Dict[str, float]:
        d = asdict(self)
        d.update(
            free_memory=self.free_memory,
            utilization=self.utilization,
            internal_fragmentation_ratio=self.internal_fragmentation_ratio,
            external_fragmentation=self.external_fragmentation,
            successes=self.successes,
            success_rate=self.success_rate,
            failure_rate=self.failure_rate,
        )
        return d


class Exporter:
    @staticmethod
    def export_stats_csv(path: str, system) -> Optional[str]:
        """One row per cache level plus a memory row.
        """
        mem = system.allocator.snapshot()
        try:
            with open(path, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow(['component', 'hits', 'misses', 'hit_rate', 'miss_rate'])
                for i, s in enumerate(system.caches.snapshot(), start=1):
                    writer.writerow([f'L{i}', s.hits, s.misses, s.hit_rate, s.miss_rate])
                writer.writerow([])
                writer.writerow(['total_memory', 'used_memory', 'largest_free', 'internal_fragmentation_ratio',
                                 'external_fragmentation', 'attempts', 'successes', 'failures'])
                writer.writerow([
                    mem.total_memory, mem.used_memory, mem.largest_free, mem.internal_fragmentation_ratio,
                    mem.external_fragmentation, mem.attempts, mem.successes, mem.failures
                ])
        except OSError:
            logger.exception("could not write %s", path)
            return None
        return path
