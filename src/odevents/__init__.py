"""Zero-crossing event detection for ODE integration."""

from .algorithms import (Action, BisectionSolver, BrentSolver,
                         DenseStepInterpolator, EventConfig, EventHandler,
                         EventManager, EventState, FunctionEventHandler,
                         ScipyIntegrator, SlopeSelection, Solution)
from .algorithms.utils.exceptions import (ConvergenceError, EventStateError,
                                          IntegrationError, NoBracketingError,
                                          OdeventsError)

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
    "OdeventsError",
    "ConvergenceError",
    "NoBracketingError",
    "EventStateError",
    "IntegrationError",
]
