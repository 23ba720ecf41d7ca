"""Coordinate the event states of one integration run.

The manager replays, for every accepted step, the protocol an integrator
must follow with its :class:`~odevents.algorithms.events.state.EventState`
objects: evaluate all of them, handle the chronologically first event on the
part of the step that precedes it, commit it, and look again at the rest of
the step for the handler that just fired.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from odevents.algorithms.events.configs import _EventConfig
from odevents.algorithms.events.handlers import EventHandler
from odevents.algorithms.events.state import EventState
from odevents.algorithms.events.types import EventRecord
from odevents.algorithms.rootfinding.solvers import BrentSolver
from odevents.utils.log_config import logger

if TYPE_CHECKING:
    from odevents.algorithms.integrators.interpolators import \
        DenseStepInterpolator


@dataclass(frozen=True)
class StepOutcome:
    """Result of handling one accepted step.

    Attributes
    ----------
    t : float
        Time at which the step effectively ends: the event time when the
        step was truncated by an event, the step end otherwise.
    state : numpy.ndarray
        State at *t*. After a reset this is the state to restart from.
    stop : bool
        True if a handler asked to stop the integration.
    reset : bool
        True if a handler asked for a state or derivative reset; the
        integrator must restart from ``(t, state)``.
    events : tuple of :class:`~odevents.algorithms.events.types.EventRecord`
        Events committed during the step, in chronological order.
    """

    t: float
    state: np.ndarray
    stop: bool = False
    reset: bool = False
    events: Tuple[EventRecord, ...] = field(default_factory=tuple)


class EventManager:
    """Drive a collection of event states through accepted steps.

    Parameters
    ----------
    states : Sequence[EventState], optional
        Event states in registration order. Simultaneous events are handled
        in this order.
    """

    def __init__(self, states: Sequence[EventState] = ()):
        self._states: List[EventState] = list(states)
        self._initialized = False

    @classmethod
    def from_handlers(
        cls,
        handlers: Iterable[EventHandler],
        config: Optional[_EventConfig] = None,
    ) -> "EventManager":
        """Build one event state per handler, sharing *config*.

        Each state gets its own :class:`~odevents.algorithms.rootfinding.solvers.BrentSolver`
        with ``config.convergence`` as absolute accuracy.
        """
        cfg = config if config is not None else _EventConfig()
        states = [
            EventState(
                handler,
                cfg.max_check_interval,
                cfg.convergence,
                cfg.max_iter,
                BrentSolver(absolute_accuracy=cfg.convergence),
            )
            for handler in handlers
        ]
        return cls(states)

    @property
    def states(self) -> Tuple[EventState, ...]:
        return tuple(self._states)

    def add_state(self, state: EventState) -> None:
        self._states.append(state)
        self._initialized = False

    def init(self, t0: float, y0: np.ndarray, t_end: float) -> None:
        """Notify every handler that a run from *t0* to *t_end* starts."""
        for state in self._states:
            state.event_handler.init(t0, y0, t_end)
        self._initialized = False

    def reinitialize_begin(self, interpolator: "DenseStepInterpolator") -> None:
        """Seed every event state at the start of *interpolator*."""
        for state in self._states:
            state.reinitialize_begin(interpolator)
        self._initialized = True

    def accept_step(self, interpolator: "DenseStepInterpolator") -> StepOutcome:
        """Handle the events of one accepted step.

        Parameters
        ----------
        interpolator : :class:`~odevents.algorithms.integrators.interpolators.DenseStepInterpolator`
            Dense view of the accepted step.

        Returns
        -------
        :class:`~odevents.algorithms.events.manager.StepOutcome`
            Where and how the step ends.

        Raises
        ------
        :class:`~odevents.algorithms.utils.exceptions.ConvergenceError`
            If an event cannot be localized.
        :class:`~odevents.algorithms.utils.exceptions.EventStateError`
            If an event state is driven out of sequence.
        """
        if not self._initialized:
            self.reinitialize_begin(interpolator)

        forward = interpolator.forward
        previous_t = interpolator.previous_time
        current_t = interpolator.current_time
        sign = 1.0 if forward else -1.0

        records: List[EventRecord] = []
        occurring = [state for state in self._states if state.evaluate_step(interpolator)]

        while occurring:
            # min() keeps the first of equal candidates
            current = min(occurring, key=lambda s: sign * s.event_time)
            occurring.remove(current)

            event_t = current.event_time
            head = interpolator.restrict(previous_t, event_t)
            head.set_interpolated_time(event_t)
            event_y = head.get_interpolated_state()

            current.step_accepted(event_t, event_y)
            record = EventRecord(
                t=event_t,
                state=event_y.copy(),
                handler=current.event_handler,
                increasing=current.increasing,
                action=current.next_action,
            )
            records.append(record)
            logger.debug(
                "Event at t=%s from %r (increasing=%s, action=%s)",
                event_t, current.event_handler, record.increasing, record.action.name,
            )

            remove = current.remove_detector()
            if remove:
                self._states.remove(current)
                logger.debug("Removing event handler %r", current.event_handler)

            if current.stop():
                return StepOutcome(event_t, event_y, stop=True, events=tuple(records))

            if current.reset(event_t, event_y):
                # States are seeded again when the integration restarts at event_t
                self._initialized = False
                return StepOutcome(event_t, current.reset_state_value, reset=True, events=tuple(records))

            previous_t = event_t
            if not remove and current.evaluate_step(interpolator.restrict(event_t, current_t)):
                occurring.append(current)

        interpolator.set_interpolated_time(current_t)
        current_y = interpolator.get_interpolated_state()
        for state in self._states:
            state.step_accepted(current_t, current_y)

        return StepOutcome(current_t, current_y, events=tuple(records))

    def __repr__(self):
        return f"{self.__class__.__name__}(states={self._states!r})"
