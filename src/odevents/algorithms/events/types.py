"""Enumerations and records shared by the event detection machinery."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from odevents.algorithms.events.handlers import EventHandler


class Action(Enum):
    """Decision returned by an event handler once an event is committed."""

    CONTINUE = "continue"
    STOP = "stop"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"


class SlopeSelection(IntEnum):
    """Crossing directions an event handler is interested in.

    Directions are measured with respect to physical time, so a handler
    selecting ``INCREASING`` sees the same crossings whether the integration
    runs forward or backward.
    """

    INCREASING = 0
    DECREASING = 1
    ANY = 2


@dataclass(frozen=True)
class EventRecord:
    """Description of one committed event.

    Attributes
    ----------
    t : float
        Event time.
    state : numpy.ndarray
        State at the event time, before any reset requested by the handler.
    handler : EventHandler
        Handler whose switching function vanished.
    increasing : bool
        True when g increases with physical time across the event.
    action : Action
        Decision returned by the handler.
    """

    t: float
    state: np.ndarray
    handler: "EventHandler"
    increasing: bool
    action: Action
