"""Detection and localization of switching-function zero crossings."""

from .configs import _EventConfig as EventConfig
from .handlers import EventHandler, FunctionEventHandler
from .manager import EventManager, StepOutcome
from .protocols import RootSolverProtocol, StepInterpolatorProtocol
from .state import EventState
from .types import Action, EventRecord, SlopeSelection

__all__ = [
    "Action",
    "SlopeSelection",
    "EventRecord",
    "EventConfig",
    "EventHandler",
    "FunctionEventHandler",
    "EventState",
    "EventManager",
    "StepOutcome",
    "RootSolverProtocol",
    "StepInterpolatorProtocol",
]
