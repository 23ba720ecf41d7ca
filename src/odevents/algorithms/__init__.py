""" Public API for the :mod:`~odevents.algorithms` package.
"""

from .events import (Action, EventConfig, EventHandler, EventManager,
                     EventState, FunctionEventHandler, SlopeSelection)
from .integrators import DenseStepInterpolator, ScipyIntegrator, Solution
from .rootfinding import BisectionSolver, BrentSolver

__all__ = [
    "Action",
    "SlopeSelection",
    "EventConfig",
    "EventHandler",
    "FunctionEventHandler",
    "EventState",
    "EventManager",
    "DenseStepInterpolator",
    "ScipyIntegrator",
    "Solution",
    "BrentSolver",
    "BisectionSolver",
]
