"""Track one switching function across the steps of an integration run.

Each time the integrator proposes a step, the switching function of every
registered handler must be checked. :class:`~odevents.algorithms.events.state.EventState`
holds the state of one handler during one step, with references to the end
of the preceding step, and decides whether the handler triggers an event in
the proposed step.

The expected call sequence per run is::

    state.reinitialize_begin(interpolator)       # seed g at the step start
    while integrating:
        if state.evaluate_step(interpolator):    # event inside the step?
            t_event = state.event_time           # integrator truncates here
        state.step_accepted(t, y)                # commit the event, if any
        if state.reset(t, y):                    # handler asked for a reset
            y = state.reset_state_value

Notes
-----
The state is purely computational: it never logs, retries or relaxes
tolerances. Root-solver failures and sequencing faults propagate to the
caller untouched.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from numba import njit

from odevents.algorithms.events.handlers import EventHandler
from odevents.algorithms.events.protocols import (RootSolverProtocol,
                                                  StepInterpolatorProtocol)
from odevents.algorithms.events.types import Action, SlopeSelection
from odevents.algorithms.rootfinding.solvers import BrentSolver
from odevents.algorithms.utils.config import FASTMATH, TIME_EPSILON
from odevents.algorithms.utils.exceptions import (ConvergenceError,
                                                  EventStateError,
                                                  NoBracketingError)


@njit(cache=False, fastmath=FASTMATH)
def _classify_crossing(ga: float, gb: float, forward: bool, slope: int):
    """Classify the change of g between two consecutive samples.

    Samples are ordered along the integration direction. A zero at exactly
    one end point counts as a crossing.

    Returns
    -------
    crossing : bool
        True if g changes sign (or reaches zero) between the samples.
    increasing : bool
        True if g increases with physical time across the crossing.
    accepted : bool
        True if *slope* selects this crossing direction.
    """
    if ga == 0.0 and gb == 0.0:
        return False, False, False
    crossing = (ga >= 0.0) != (gb >= 0.0) or ga == 0.0 or gb == 0.0
    if not crossing:
        return False, False, False
    rising = gb > ga
    increasing = rising if forward else not rising
    if slope == 2:
        return True, increasing, True
    if slope == 0:
        return True, increasing, increasing
    return True, increasing, not increasing


@dataclass
class _ScanState:
    """Mutable bookkeeping of an :class:`~odevents.algorithms.events.state.EventState`.

    Attributes
    ----------
    initialized : bool
        False until the first call to ``reinitialize_begin``.
    t0 : float
        Start of the interval still to be scanned.
    g0 : float
        Reference value of g at *t0*. After a committed event only its sign
        is meaningful and it is stored as +/- infinity.
    g0_positive : bool
        ``g0 >= 0``.
    forward : bool
        Integration direction seen by the last ``reinitialize_begin``.
    pending_event : bool
        True between a successful ``evaluate_step`` and the matching
        ``step_accepted`` / ``reset``.
    pending_event_time : float
        Located time of the pending event, NaN if none.
    previous_event_time : float
        Time of the last committed event, NaN if none.
    increasing : bool
        Direction (in physical time) of the last located crossing.
    next_action : Action
        Decision returned by the handler for the last committed event.
    remove : bool
        True once the handler asked to be removed.
    """

    initialized: bool = False
    t0: float = math.nan
    g0: float = math.nan
    g0_positive: bool = True
    forward: bool = True
    pending_event: bool = False
    pending_event_time: float = math.nan
    previous_event_time: float = math.nan
    increasing: bool = True
    next_action: Action = Action.CONTINUE
    remove: bool = False


class EventState:
    """Handle the state of one event handler during integration steps.

    Parameters
    ----------
    handler : :class:`~odevents.algorithms.events.handlers.EventHandler`
        Switching function and reaction to its events. The state holds a
        non-owning reference.
    max_check_interval : float
        Maximal time interval between switching function checks. It prevents
        missing sign changes when integration steps become very large.
    convergence : float
        Convergence threshold of the event time search. Events closer than
        this to the last committed event are treated as the same event.
    max_iteration_count : int
        Evaluation budget of the root solver for one event.
    solver : :class:`~odevents.algorithms.events.protocols.RootSolverProtocol`, optional
        Root-finding algorithm. Defaults to a
        :class:`~odevents.algorithms.rootfinding.solvers.BrentSolver` whose
        accuracy is *convergence*.

    Raises
    ------
    ValueError
        If *max_check_interval* is not positive or *max_iteration_count* is
        below 1.

    Notes
    -----
    Where *convergence* is finer than the float resolution at the current
    time, time comparisons fall back to the spacing between adjacent floats.
    """

    def __init__(
        self,
        handler: EventHandler,
        max_check_interval: float,
        convergence: float,
        max_iteration_count: int,
        solver: Optional[RootSolverProtocol] = None,
    ):
        if not max_check_interval > 0.0:
            raise ValueError(f"max_check_interval must be positive, got {max_check_interval}")
        if max_iteration_count < 1:
            raise ValueError(f"max_iteration_count must be at least 1, got {max_iteration_count}")
        self._handler = handler
        self._max_check_interval = max_check_interval
        self._convergence = convergence
        self._max_iteration_count = max_iteration_count
        self._tol = abs(convergence)
        self._solver = solver if solver is not None else BrentSolver(absolute_accuracy=self._tol)
        self._state = _ScanState()
        self._reset_state_value: Optional[np.ndarray] = None

    @property
    def event_handler(self) -> EventHandler:
        return self._handler

    @property
    def max_check_interval(self) -> float:
        return self._max_check_interval

    @property
    def convergence(self) -> float:
        return self._convergence

    @property
    def max_iteration_count(self) -> int:
        return self._max_iteration_count

    @property
    def solver(self) -> RootSolverProtocol:
        return self._solver

    @property
    def scan_state(self) -> _ScanState:
        """Internal bookkeeping record, exposed for inspection only."""
        return self._state

    @property
    def t0(self) -> float:
        return self._state.t0

    @property
    def previous_event_time(self) -> float:
        return self._state.previous_event_time

    @property
    def event_time(self) -> float:
        """Occurrence time of the event found in the current step.

        Returns
        -------
        float
            The pending event time, or infinity (signed along the
            integration direction) if no event is pending.
        """
        s = self._state
        if s.pending_event:
            return s.pending_event_time
        return math.inf if s.forward else -math.inf

    @property
    def increasing(self) -> bool:
        """Direction, in physical time, of the last located crossing."""
        return self._state.increasing

    @property
    def next_action(self) -> Action:
        return self._state.next_action

    @property
    def reset_state_value(self) -> Optional[np.ndarray]:
        """State produced by the handler during the last successful ``reset``."""
        return self._reset_state_value

    def reinitialize_begin(self, interpolator: StepInterpolatorProtocol) -> None:
        """Seed the reference value of g at the beginning of the step.

        When the step starts inside the tolerance window of the last
        committed event, g is sampled one tolerance further along the
        integration direction so the event just processed is not seen again.

        Parameters
        ----------
        interpolator : :class:`~odevents.algorithms.events.protocols.StepInterpolatorProtocol`
            Interpolator valid for the step about to be scanned.
        """
        s = self._state
        t = interpolator.previous_time
        forward = bool(interpolator.forward)

        t_sample = t
        if self._is_previous_event(t):
            tol = self._time_tolerance(t)
            t_sample = t + tol if forward else t - tol

        interpolator.set_interpolated_time(t_sample)
        g0 = float(self._handler.g(t_sample, interpolator.get_interpolated_state()))

        s.t0 = t
        s.g0 = g0
        s.g0_positive = g0 >= 0.0
        s.forward = forward
        s.pending_event = False
        s.pending_event_time = math.nan
        s.initialized = True

    def evaluate_step(self, interpolator: StepInterpolatorProtocol) -> bool:
        """Evaluate the impact of the proposed step on the event handler.

        Parameters
        ----------
        interpolator : :class:`~odevents.algorithms.events.protocols.StepInterpolatorProtocol`
            Interpolator for the proposed step. Its previous time must match
            the end of the interval scanned so far.

        Returns
        -------
        bool
            True if the handler triggers an event before the end of the
            proposed step. The event time is then available as
            :attr:`~odevents.algorithms.events.state.EventState.event_time`.

        Raises
        ------
        :class:`~odevents.algorithms.utils.exceptions.ConvergenceError`
            If the root solver cannot isolate the event time within
            ``max_iteration_count`` evaluations.
        :class:`~odevents.algorithms.utils.exceptions.EventStateError`
            If the state was never seeded, the integration direction changed
            without re-seeding, the step does not start where the previous
            scan ended, or the solver returned an impossible answer.
        """
        s = self._state
        if not s.initialized:
            raise EventStateError("evaluate_step called before reinitialize_begin")

        forward = bool(interpolator.forward)
        if forward != s.forward:
            raise EventStateError(
                "Integration direction changed; reinitialize_begin must be called first"
            )

        t_prev = interpolator.previous_time
        if abs(t_prev - s.t0) > TIME_EPSILON * max(1.0, abs(s.t0)):
            raise EventStateError(
                f"Step starts at t={t_prev} but the previous scan ended at t={s.t0}"
            )

        s.pending_event = False
        s.pending_event_time = math.nan

        t1 = interpolator.current_time
        dt = t1 - s.t0
        abs_dt = abs(dt)

        # A step shorter than the tolerance cannot isolate a distinct root;
        # the reference sign is kept so a crossing shows up at the start of
        # the next step.
        if abs_dt < self._tol:
            s.t0 = t1
            return False

        handler = self._handler

        def f(t: float) -> float:
            interpolator.set_interpolated_time(t)
            return float(handler.g(t, interpolator.get_interpolated_state()))

        n = max(1, int(math.ceil(abs_dt / self._max_check_interval)))
        h = dt / n
        direction = 1.0 if forward else -1.0
        slope = int(handler.slope_selection)

        t00 = s.t0
        ta = t00
        ga = s.g0
        i = 0
        while i < n:
            # Due to round-off the last sub-step must end exactly at t1
            tb = t1 if i == n - 1 else t00 + (i + 1) * h
            gb = f(tb)

            crossing, increasing, accepted = _classify_crossing(ga, gb, forward, slope)
            if crossing and accepted:
                root = self._locate(f, ta, tb, gb, direction)

                if self._is_previous_event(root):
                    # Found the event already committed: resume just past it
                    ta_next = root + direction * self._time_tolerance(root)
                    if direction * (ta_next - ta) <= 0.0:
                        ta_next = ta + direction * self._time_tolerance(ta)
                    if direction * (ta_next - tb) >= 0.0:
                        ta, ga = tb, gb
                        i += 1
                    else:
                        ta, ga = ta_next, f(ta_next)
                    continue

                s.pending_event = True
                s.pending_event_time = root
                s.increasing = bool(increasing)
                return True

            # No usable crossing in [ta, tb]; a sign change filtered out by
            # the slope selection still moves the reference sign.
            ta, ga = tb, gb
            i += 1

        s.t0 = t1
        s.g0 = ga
        s.g0_positive = ga >= 0.0
        return False

    def step_accepted(self, t: float, y: np.ndarray) -> None:
        """Acknowledge that the integrator accepted a step ending at *t*.

        If an event is pending at *t* it is committed: the handler is
        notified, the event time becomes the reference for duplicate
        detection and the reference sign flips to its value just after the
        event.

        Parameters
        ----------
        t : float
            End of the accepted step.
        y : numpy.ndarray
            State at *t*.
        """
        s = self._state
        s.t0 = t

        if s.pending_event and abs(s.pending_event_time - t) <= self._time_tolerance(t):
            s.next_action = Action(self._handler.event_occurred(t, y, s.increasing, s.forward))
            s.remove = bool(self._handler.should_be_removed())
            s.previous_event_time = t
            after_positive = s.increasing == s.forward
            s.g0 = math.inf if after_positive else -math.inf
            s.g0_positive = after_positive
        else:
            # A pending event further along is found again by the next evaluate_step
            s.next_action = Action.CONTINUE
        s.pending_event = False
        s.pending_event_time = math.nan

    def reset(self, t: float, y: np.ndarray) -> bool:
        """Let the event handler reset the state if it asked for it.

        Parameters
        ----------
        t : float
            Time of the committed event.
        y : numpy.ndarray
            State at *t*.

        Returns
        -------
        bool
            True if the integrator must restart from a new state or recompute
            its derivatives. For ``RESET_STATE`` the new state is available as
            :attr:`~odevents.algorithms.events.state.EventState.reset_state_value`.
        """
        s = self._state
        action = s.next_action
        if action is Action.RESET_STATE:
            self._reset_state_value = np.asarray(self._handler.reset_state(t, y), dtype=float)
        elif action is Action.RESET_DERIVATIVES:
            self._reset_state_value = np.asarray(y, dtype=float)
        else:
            return False

        s.next_action = Action.CONTINUE
        s.pending_event = False
        s.pending_event_time = math.nan
        return True

    def is_pending_reset(self) -> bool:
        return self._state.next_action in (Action.RESET_STATE, Action.RESET_DERIVATIVES)

    def stop(self) -> bool:
        """Check if the integration should stop after the committed event."""
        return self._state.next_action is Action.STOP

    def remove_detector(self) -> bool:
        """Check if the handler should be dropped after the committed event."""
        return self._state.remove

    def _time_tolerance(self, t: float) -> float:
        # convergence cannot be resolved below the float spacing at t
        return max(self._tol, float(np.spacing(abs(t))))

    def _is_previous_event(self, t: float) -> bool:
        prev = self._state.previous_event_time
        return not math.isnan(prev) and abs(t - prev) <= self._time_tolerance(prev)

    def _locate(
        self,
        f: Callable[[float], float],
        ta: float,
        tb: float,
        gb: float,
        direction: float,
    ) -> float:
        """Isolate the crossing bracketed by ``[ta, tb]``.

        The returned time lies at or just past the root along the
        integration direction.
        """
        # The reference value at ta may be a sign-only placeholder, so
        # sample g again before bracketing.
        ga = f(ta)
        if ga == 0.0:
            return ta
        if gb == 0.0:
            return tb
        if (ga > 0.0) == (gb > 0.0):
            # The sign flipped at or before ta
            return ta

        try:
            root = float(self._solver.solve(self._max_iteration_count, f, ta, tb))
        except NoBracketingError as exc:
            raise EventStateError(
                f"Solver rejected the bracket [{ta}, {tb}] despite a sign change: {exc}"
            ) from exc

        lo, hi = min(ta, tb), max(ta, tb)
        tol = max(self._time_tolerance(lo), self._time_tolerance(hi))
        if not (lo - tol <= root <= hi + tol) or math.isnan(root):
            raise EventStateError(f"Solver returned t={root} outside the bracket [{ta}, {tb}]")
        root = min(max(root, lo), hi)

        return self._force_past_root(f, root, tb, gb > 0.0, direction)

    def _force_past_root(
        self,
        f: Callable[[float], float],
        root: float,
        tb: float,
        after_positive: bool,
        direction: float,
    ) -> float:
        """Move *root* onto the post-crossing side of g.

        The root solver only guarantees a time within tolerance of the
        crossing; the sign just after the event is what the next step starts
        from.
        """
        g_root = f(root)
        if g_root == 0.0 or (g_root > 0.0) == after_positive:
            return root

        budget = self._max_iteration_count
        tol = self._time_tolerance(root)
        lo = root
        hi = tb
        step = tol
        while budget > 0:
            candidate = lo + direction * step
            if direction * (candidate - tb) >= 0.0:
                break
            budget -= 1
            g_c = f(candidate)
            if g_c == 0.0 or (g_c > 0.0) == after_positive:
                hi = candidate
                break
            lo = candidate
            step *= 2.0

        while abs(hi - lo) > tol:
            mid = 0.5 * (lo + hi)
            if mid == lo or mid == hi:
                # Floating point resolution reached
                break
            if budget <= 0:
                raise ConvergenceError(
                    f"Could not move the event time past the root within {self._max_iteration_count} evaluations"
                )
            budget -= 1
            g_mid = f(mid)
            if g_mid == 0.0 or (g_mid > 0.0) == after_positive:
                hi = mid
            else:
                lo = mid
        return hi

    def __repr__(self):
        return (f"{self.__class__.__name__}(handler={self._handler!r}, "
                f"max_check_interval={self._max_check_interval}, "
                f"convergence={self._convergence}, "
                f"max_iteration_count={self._max_iteration_count})")
