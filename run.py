"""Checkout entry point for the Memory Hierarchy Simulator.

Usage:
    python run.py           # starts the interactive console
    python run.py --demo    # runs a quick headless walk through allocator and caches
    python run.py --verbose # either of the above with debug logging

An installed copy exposes the same entry point as the `memsim` script.
"""
from src.simulation.console import main


if __name__ == '__main__':
    main()
