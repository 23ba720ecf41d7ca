"""Switching functions consumed by :class:`~odevents.algorithms.events.state.EventState`.

An event handler couples a scalar switching function ``g(t, y)`` with the
reaction to its zero crossings. Concrete handlers subclass
:class:`~odevents.algorithms.events.handlers.EventHandler`; plain callables
can be wrapped in :class:`~odevents.algorithms.events.handlers.FunctionEventHandler`.
"""

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from odevents.algorithms.events.types import Action, SlopeSelection


class EventHandler(ABC):
    """Define the interface every switching function must satisfy.

    Only :func:`~odevents.algorithms.events.handlers.EventHandler.g` and
    :func:`~odevents.algorithms.events.handlers.EventHandler.event_occurred`
    are mandatory; the remaining hooks have neutral defaults.

    Notes
    -----
    The switching function must be continuous over each integration step,
    otherwise root bracketing is meaningless.

    Examples
    --------
    Stop the integration when the first component reaches zero::

        class GroundHit(EventHandler):
            def g(self, t, y):
                return y[0]

            def event_occurred(self, t, y, increasing, forward):
                return Action.STOP
    """

    @abstractmethod
    def g(self, t: float, y: np.ndarray) -> float:
        """Evaluate the switching function at ``(t, y)``."""

    @abstractmethod
    def event_occurred(self, t: float, y: np.ndarray, increasing: bool, forward: bool) -> Action:
        """React to a committed event.

        Parameters
        ----------
        t : float
            Event time.
        y : numpy.ndarray
            State at the event time.
        increasing : bool
            True if g increases with physical time across the event.
        forward : bool
            True if the integration runs forward in time.

        Returns
        -------
        :class:`~odevents.algorithms.events.types.Action`
            What the integrator should do next.
        """

    def init(self, t0: float, y0: np.ndarray, t_end: float) -> None:
        """Hook called once at the start of an integration run."""
        return None

    def reset_state(self, t: float, y: np.ndarray) -> np.ndarray:
        """Return the state the integration should restart from after a reset."""
        return y

    def should_be_removed(self) -> bool:
        """Return True when the handler must not be checked anymore."""
        return False

    @property
    def slope_selection(self) -> SlopeSelection:
        return SlopeSelection.ANY


class FunctionEventHandler(EventHandler):
    """Wrap a plain callable ``g(t, y) -> float`` into an event handler.

    Parameters
    ----------
    fn : Callable[[float, numpy.ndarray], float]
        Switching function.
    slope_selection : :class:`~odevents.algorithms.events.types.SlopeSelection`, default ANY
        Crossing directions to report.
    action : :class:`~odevents.algorithms.events.types.Action`, default STOP
        Action returned on every event.
    reset_fn : Callable[[float, numpy.ndarray], numpy.ndarray], optional
        State reset applied when *action* is ``RESET_STATE``.
    one_shot : bool, default False
        When True the handler asks for removal after its first event.
    """

    def __init__(
        self,
        fn: Callable[[float, np.ndarray], float],
        slope_selection: SlopeSelection = SlopeSelection.ANY,
        action: Action = Action.STOP,
        reset_fn: "Callable[[float, np.ndarray], np.ndarray] | None" = None,
        one_shot: bool = False,
    ):
        if action is Action.RESET_STATE and reset_fn is None:
            raise ValueError("A reset function is required when action is RESET_STATE")
        self._fn = fn
        self._slope = SlopeSelection(slope_selection)
        self._action = action
        self._reset_fn = reset_fn
        self._one_shot = one_shot
        self._fired = False

    def g(self, t: float, y: np.ndarray) -> float:
        return float(self._fn(t, y))

    def event_occurred(self, t: float, y: np.ndarray, increasing: bool, forward: bool) -> Action:
        self._fired = True
        return self._action

    def init(self, t0: float, y0: np.ndarray, t_end: float) -> None:
        self._fired = False

    def reset_state(self, t: float, y: np.ndarray) -> np.ndarray:
        if self._reset_fn is None:
            return y
        return np.asarray(self._reset_fn(t, y), dtype=float)

    def should_be_removed(self) -> bool:
        return self._one_shot and self._fired

    @property
    def slope_selection(self) -> SlopeSelection:
        return self._slope

    def __repr__(self):
        name = getattr(self._fn, "__name__", repr(self._fn))
        return f"{self.__class__.__name__}(fn={name}, slope_selection={self._slope.name}, action={self._action.name})"
