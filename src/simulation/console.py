"""Interactive console for the memory hierarchy simulator.

Reads one command per line, hands it to `Simulation.execute` and prints
the result, until `exit` or end of input.

Usage:
    memsim           # starts the interactive console
    memsim --demo    # runs a quick headless walk through allocator and caches
    memsim --verbose # either of the above with debug logging
"""
import logging
import sys

from src.core.config import SystemConfig
from src.core.simulator import MemorySystem
from src.simulation.simulation import Simulation


def run_console(stdin=None, stdout=None, prompt: str = '> '):
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    sim = Simulation()
    while True:
        stdout.write(prompt)
        stdout.flush()
        line = stdin.readline()
        if not line:
            break
        if line.strip() == 'exit':
            break
        out = sim.execute(line)
        if out:
            stdout.write(out + '\n')
    return sim


def headless_demo(stdout=None):
    # Simple scenario to exercise allocator, invalidation and both cache levels
    stdout = stdout or sys.stdout
    system = MemorySystem(SystemConfig(total_memory=1024, strategy='first_fit'))
    a = system.malloc(100)
    b = system.malloc(200)
    system.free(a)
    system.malloc(50)
    stdout.write(system.dump() + '\n')
    stdout.write(system.memory_stats() + '\n')

    seq = [0, 0, 16, 32, 64, 0, 128, 16, 256, 0]
    system.load_sequence(seq)
    system.run_all()
    system.free(b)
    stdout.write(system.cache_stats() + '\n')
    return system


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    level = logging.DEBUG if '--verbose' in argv else logging.WARNING
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')
    if '--demo' in argv:
        headless_demo()
    else:
        run_console()
