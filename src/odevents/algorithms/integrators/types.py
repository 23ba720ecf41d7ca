from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from odevents.algorithms.events.types import EventRecord


@dataclass
class _Solution:
    """
    Container for integration results.
    
    Attributes
    ----------
    times : numpy.ndarray
        Array of time points, shape (n_points,). The last point is the event
        time when a handler stopped the integration.
    states : numpy.ndarray
        Array of state vectors, shape (n_points, n_dim)
    events : tuple of :class:`~odevents.algorithms.events.types.EventRecord`
        Events committed during the run, in chronological order.
    """
    times: np.ndarray
    states: np.ndarray
    events: Tuple[EventRecord, ...] = field(default_factory=tuple)
    
    def __post_init__(self):
        if len(self.times) != len(self.states):
            raise ValueError(
                f"Times and states must have same length: "
                f"{len(self.times)} != {len(self.states)}"
            )

    @property
    def event_times(self) -> np.ndarray:
        return np.array([event.t for event in self.events], dtype=float)

    def events_of(self, handler) -> Tuple[EventRecord, ...]:
        """Return the events committed by *handler*."""
        return tuple(event for event in self.events if event.handler is handler)
