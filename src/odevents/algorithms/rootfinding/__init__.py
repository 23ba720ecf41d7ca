"""Bracketed scalar root solvers used for event localization."""

from .solvers import BisectionSolver, BrentSolver

__all__ = [
    "BrentSolver",
    "BisectionSolver",
]
