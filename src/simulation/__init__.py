"""Simulation package.

Exposes the command interpreter and the console loop at `src.simulation`.
"""
from .simulation import Simulation
from .console import main, run_console

__all__ = ["Simulation", "main", "run_console"]
