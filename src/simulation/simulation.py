"""Simulation wrapper used by the console

Converts command lines into calls on the MemorySystem session and returns
the text to show. Input validation and fallbacks live here; the core only
sees sane values.
"""
import logging
import random

from src.core.allocator import FAIL
from src.core.config import SystemConfig, resolve_strategy
from src.core.simulator import MemorySystem
from src.data.stats_export import Exporter, export_chart_json, export_chart_pdf

logger = logging.getLogger(__name__)

SCENARIOS = ('matrix', 'strided', 'random')

HELP_TEXT = """Commands:
  init memory <size> [first_fit|best_fit|worst_fit|buddy]
  set allocator <first_fit|best_fit|worst_fit>
  set cache <L1|L2|...> <fifo|lru|lfu>
  malloc <size>
  free <id>
  access <address>
  dump | stats | stats_cache
  scenario <matrix|strided|random> [passes]
  export <json|csv|pdf> <path>
  help | exit"""


class InvalidNumberError(ValueError):
    """A command argument that should be an integer is not one."""


def _parse_int(token: str) -> int:
    # accepts decimal and 0x-prefixed hex
    try:
        return int(token, 0)
    except ValueError:
        raise InvalidNumberError(token) from None


class Simulation:
    def __init__(self):
        self.system = None

    def execute(self, line: str) -> str:
        """Run one command line and return its output ('' for blank lines)."""
        parts = line.split()
        if not parts:
            return ''
        cmd, args = parts[0], parts[1:]

        if cmd == 'help':
            return HELP_TEXT
        if cmd == 'init':
            return self._init(args)
        if self.system is None:
            return 'System not initialized'

        handler = getattr(self, f'_cmd_{cmd}', None)
        if handler is None:
            return 'Unknown command'
        try:
            return handler(args)
        except InvalidNumberError:
            return 'Invalid number'
        except IndexError:
            return 'Missing argument'

    def _init(self, args) -> str:
        # init memory <size> [strategy]
        if len(args) < 2:
            return 'Usage: init memory <size> [strategy]'
        try:
            size = _parse_int(args[1])
        except ValueError:
            return 'Invalid number'
        if size <= 0:
            return 'Size must be positive'

        strategy, notice = resolve_strategy(size, args[2] if len(args) > 2 else None)
        try:
            config = SystemConfig(total_memory=size, strategy=strategy)
        except ValueError as e:
            logger.warning("init rejected: %s", e)
            return f'Invalid configuration: {e}'

        if self.system is None:
            self.system = MemorySystem(config)
        else:
            self.system.reinitialize(config)

        out = [f'Memory initialized with size {size}']
        if notice:
            out.append(notice)
        return '\n'.join(out)

    def _cmd_set(self, args) -> str:
        what = args[0]
        if what == 'cache':
            level, policy = args[1], args[2]
            index = self._level_index(level)
            if index is None:
                return 'Invalid cache level'
            if not self.system.set_policy(index, policy):
                return 'Invalid cache policy'
            return f'Cache policy for {level} set to {policy}'

        kind = args[1] if what == 'allocator' and len(args) > 1 else what
        if kind == 'buddy':
            return 'Buddy allocator can only be set at init'
        if self.system.allocator.strategy == 'buddy':
            return 'Buddy allocator can only be changed at init'
        if not self.system.set_strategy(kind):
            return 'Invalid allocation type'
        return f'Allocator set to {kind}'

    def _level_index(self, name: str):
        if len(name) < 2 or name[0] not in 'Ll' or not name[1:].isdigit():
            return None
        index = int(name[1:]) - 1
        if not 0 <= index < len(self.system.caches):
            return None
        return index

    def _cmd_malloc(self, args) -> str:
        alloc_id = self.system.malloc(_parse_int(args[0]))
        if alloc_id == FAIL:
            return 'Allocation failed'
        return f'Allocation block id = {alloc_id}'

    def _cmd_free(self, args) -> str:
        alloc_id = _parse_int(args[0])
        if self.system.free(alloc_id):
            return f'Block {alloc_id} freed and merged'
        return 'Invalid block id'

    def _cmd_access(self, args) -> str:
        address = _parse_int(args[0])
        if not 0 <= address < self.system.config.total_memory:
            return 'Invalid address'
        return 'Cache hit' if self.system.access(address) else 'Cache miss'

    def _cmd_dump(self, args) -> str:
        return self.system.dump()

    def _cmd_stats(self, args) -> str:
        return self.system.memory_stats()

    def _cmd_stats_cache(self, args) -> str:
        return self.system.cache_stats()

    def _cmd_scenario(self, args) -> str:
        name = args[0]
        if name not in SCENARIOS:
            return f'Unknown scenario (choose from {", ".join(SCENARIOS)})'
        passes = _parse_int(args[1]) if len(args) > 1 else 1
        seq = self._generate_sequence_for_scenario(name) * max(1, passes)
        self.system.load_sequence(seq)
        hits = []
        self.system.run_all(lambda info: hits.append(info['hit']))
        return f'Scenario {name}: {len(hits)} accesses, {sum(hits)} L1 hits'

    def _generate_sequence_for_scenario(self, name: str):
        # 4-byte elements of a 10x10 matrix, wrapped into the address space
        total = self.system.config.total_memory
        n = 10
        if name == 'matrix':
            seq = [(i * n + j) * 4 for i in range(n) for j in range(n)]
        elif name == 'strided':
            seq = [(j * n + i) * 4 for i in range(n) for j in range(n)]
        else:
            rng = random.Random(0)
            seq = [rng.randrange(total) for _ in range(64)]
        return [a % total for a in seq]

    def _cmd_export(self, args) -> str:
        fmt, path = args[0], args[1]
        if fmt == 'json':
            saved = export_chart_json(self.system.hit_rate_history, self.system.summary(), path)
        elif fmt == 'csv':
            saved = Exporter.export_stats_csv(path, self.system)
        elif fmt == 'pdf':
            saved = export_chart_pdf(self.system.hit_rate_history, path)
        else:
            return 'Unknown export format'
        return f'Statistics exported to {saved}' if saved else 'Export failed'
