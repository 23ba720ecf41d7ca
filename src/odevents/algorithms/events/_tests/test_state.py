import math

import numpy as np
import pytest

from odevents.algorithms.events.handlers import EventHandler
from odevents.algorithms.events.state import EventState, _classify_crossing
from odevents.algorithms.events.types import Action, SlopeSelection
from odevents.algorithms.integrators.interpolators import DenseStepInterpolator
from odevents.algorithms.rootfinding.solvers import BrentSolver
from odevents.algorithms.utils.exceptions import (ConvergenceError,
                                                  EventStateError,
                                                  NoBracketingError)

TOL = 1e-10


class _RecordingHandler(EventHandler):
    """Handler whose switching function is fn(t) and which records its events."""

    def __init__(self, fn, slope=SlopeSelection.ANY, action=Action.CONTINUE):
        self._fn = fn
        self._slope = slope
        self._action = action
        self.events = []
        self.resets = 0

    def g(self, t, y):
        return self._fn(t)

    def event_occurred(self, t, y, increasing, forward):
        self.events.append((t, increasing, forward))
        return self._action

    def reset_state(self, t, y):
        self.resets += 1
        return y + 1.0

    @property
    def slope_selection(self):
        return self._slope


class _SpySolver:
    def __init__(self):
        self.calls = 0
        self._inner = BrentSolver(absolute_accuracy=TOL)

    def solve(self, max_evaluations, f, lower, upper):
        self.calls += 1
        return self._inner.solve(max_evaluations, f, lower, upper)


class _NeverConvergingSolver:
    def solve(self, max_evaluations, f, lower, upper):
        for _ in range(max_evaluations):
            f(0.5 * (lower + upper))
        raise ConvergenceError(f"no root after {max_evaluations} evaluations")


class _RiggedSolver:
    def __init__(self, root):
        self.root = root

    def solve(self, max_evaluations, f, lower, upper):
        return self.root


class _ShortOfRootSolver:
    """Brent's answer moved one float back towards *lower*."""

    def __init__(self):
        self._inner = BrentSolver(absolute_accuracy=1e-12)

    def solve(self, max_evaluations, f, lower, upper):
        root = self._inner.solve(max_evaluations, f, lower, upper)
        return float(np.nextafter(root, lower))


class _NoBracketSolver:
    def solve(self, max_evaluations, f, lower, upper):
        raise NoBracketingError("rigged")


def _step(t_prev, t_curr):
    # The state is the time itself, so g(t, y) = fn(t) = fn(y[0])
    return DenseStepInterpolator(t_prev, t_curr, lambda t: np.array([t]))


def _state(handler, max_check=1.0, convergence=TOL, max_iter=100, solver=None):
    if solver is None:
        solver = BrentSolver(absolute_accuracy=convergence)
    return EventState(handler, max_check, convergence, max_iter, solver)


@pytest.mark.parametrize(
    "max_check, convergence, max_iter",
    [(0.5, 1e-6, 10), (60.0, 1e-12, 100), (np.inf, 1e-3, 1)],
)
def test_getters_return_constructor_values(max_check, convergence, max_iter):
    handler = _RecordingHandler(lambda t: 1.0)
    solver = BrentSolver()
    es = EventState(handler, max_check, convergence, max_iter, solver)

    assert es.max_check_interval == max_check
    assert es.convergence == convergence
    assert es.max_iteration_count == max_iter
    assert es.event_handler is handler
    assert es.solver is solver


def test_default_solver_is_brent():
    es = EventState(_RecordingHandler(lambda t: 1.0), 1.0, 1e-9, 50)
    assert isinstance(es.solver, BrentSolver)
    assert es.solver.absolute_accuracy == 1e-9


@pytest.mark.parametrize("t_prev, t_curr", [(0.0, 1.0), (3.0, -2.0), (0.0, 100.0)])
def test_constant_g_never_triggers(t_prev, t_curr):
    es = _state(_RecordingHandler(lambda t: 1.0), max_check=0.1)
    it = _step(t_prev, t_curr)

    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)
    assert es.t0 == t_curr


def test_single_crossing_is_located_within_convergence():
    handler = _RecordingHandler(lambda t: t - 0.3)
    es = _state(handler)
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert abs(es.event_time - 0.3) <= TOL
    assert es.increasing
    # located at or just past the root
    assert es.event_time - 0.3 >= 0.0

    es.step_accepted(es.event_time, np.array([es.event_time]))
    assert len(handler.events) == 1
    t, increasing, forward = handler.events[0]
    assert abs(t - 0.3) <= TOL
    assert increasing
    assert forward


def test_event_time_is_infinite_without_pending_event():
    es = _state(_RecordingHandler(lambda t: 1.0))
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    es.evaluate_step(it)
    assert es.event_time == math.inf

    backward = _step(1.0, 0.0)
    es.reinitialize_begin(backward)
    es.evaluate_step(backward)
    assert es.event_time == -math.inf


def test_committed_event_is_not_reported_again():
    handler = _RecordingHandler(lambda t: t - 0.3)
    es = _state(handler)
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    t_event = es.event_time
    es.step_accepted(t_event, np.array([t_event]))
    assert es.previous_event_time == t_event

    # Remainder of the step
    assert not es.evaluate_step(it.restrict(t_event, 1.0))

    # Same interval scanned again from scratch
    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)
    assert len(handler.events) == 1


def test_previous_event_time_only_moves_on_step_accepted():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert math.isnan(es.previous_event_time)

    # The integrator truncated the step earlier because of another handler
    es.step_accepted(0.2, np.array([0.2]))
    assert math.isnan(es.previous_event_time)
    assert es.next_action is Action.CONTINUE
    assert es.event_time == math.inf
    assert es.t0 == 0.2

    # The event is still found in the rest of the step
    assert es.evaluate_step(it.restrict(0.2, 1.0))
    assert abs(es.event_time - 0.3) <= TOL


def test_backward_step_isolates_same_root():
    handler = _RecordingHandler(lambda t: t - 0.3)
    es = _state(handler)
    it = _step(1.0, 0.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert abs(es.event_time - 0.3) <= TOL
    # located at or just past the root along the integration direction
    assert 0.3 - es.event_time >= 0.0

    es.step_accepted(es.event_time, np.array([es.event_time]))
    t, increasing, forward = handler.events[0]
    # g = t - 0.3 increases with physical time even though we go backward
    assert increasing
    assert not forward

    assert not es.evaluate_step(it.restrict(es.t0, 0.0))


def test_backward_slope_selection_uses_physical_time():
    # Roots at 0.25 (g decreasing in time) and 0.65 (g increasing in time)
    handler = _RecordingHandler(lambda t: (t - 0.25) * (t - 0.65), slope=SlopeSelection.DECREASING)
    es = _state(handler, max_check=0.1)
    it = _step(1.0, 0.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert abs(es.event_time - 0.25) <= TOL
    assert not es.increasing


def test_slope_selection_filters_crossings():
    handler = _RecordingHandler(lambda t: (t - 0.25) * (t - 0.65), slope=SlopeSelection.INCREASING)
    es = _state(handler, max_check=0.1)
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert abs(es.event_time - 0.65) <= TOL
    assert es.increasing


def test_slope_selection_rejects_only_crossing():
    es = _state(_RecordingHandler(lambda t: t - 0.3, slope=SlopeSelection.DECREASING))
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)
    # the reference sign followed g across the rejected crossing
    assert es.scan_state.g0_positive


def test_first_crossing_wins():
    es = _state(_RecordingHandler(lambda t: (t - 0.25) * (t - 0.65)), max_check=0.1)
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert abs(es.event_time - 0.25) <= TOL
    assert not es.increasing


def test_max_check_interval_catches_double_crossing():
    fn = lambda t: (t - 0.25) * (t - 0.65)  # noqa: E731
    it = _step(0.0, 1.0)

    coarse = _state(_RecordingHandler(fn), max_check=np.inf)
    coarse.reinitialize_begin(it)
    assert not coarse.evaluate_step(it)

    fine = _state(_RecordingHandler(fn), max_check=0.1)
    fine.reinitialize_begin(it)
    assert fine.evaluate_step(it)


def test_reinitialize_begin_nudges_inside_ignore_zone():
    handler = _RecordingHandler(lambda t: t - 0.3)
    es = _state(handler)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    t_event = es.event_time
    es.step_accepted(t_event, np.array([t_event]))

    # g is sampled one tolerance past the event, on the post-event side
    nxt = _step(t_event, 1.0)
    es.reinitialize_begin(nxt)
    assert es.t0 == t_event
    assert es.scan_state.g0 == pytest.approx(t_event + TOL - 0.3, abs=1e-15)
    assert es.scan_state.g0_positive
    assert not es.evaluate_step(nxt)


def test_reinitialize_begin_nudges_backward():
    handler = _RecordingHandler(lambda t: t - 0.3)
    es = _state(handler)
    it = _step(1.0, 0.0)
    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    t_event = es.event_time
    es.step_accepted(t_event, np.array([t_event]))

    nxt = _step(t_event, 0.0)
    es.reinitialize_begin(nxt)
    assert es.scan_state.g0 < 0.0
    assert not es.evaluate_step(nxt)


def test_reinitialize_begin_is_idempotent():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    it = _step(0.1, 1.0)

    es.reinitialize_begin(it)
    first = (es.scan_state.t0, es.scan_state.g0, es.scan_state.g0_positive, es.scan_state.forward)
    es.reinitialize_begin(it)
    second = (es.scan_state.t0, es.scan_state.g0, es.scan_state.g0_positive, es.scan_state.forward)
    assert first == second


def test_zero_at_start_is_reported_at_first_date():
    es = _state(_RecordingHandler(lambda t: t))
    it = _step(0.0, 1.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert es.event_time == 0.0


def test_reset_is_idempotent():
    handler = _RecordingHandler(lambda t: t - 0.3, action=Action.RESET_STATE)
    es = _state(handler)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    t_event = es.event_time
    y = np.array([t_event])
    es.step_accepted(t_event, y)
    assert es.is_pending_reset()

    assert es.reset(t_event, y)
    np.testing.assert_allclose(es.reset_state_value, y + 1.0)
    assert not es.reset(t_event, y)
    assert handler.resets == 1
    assert not es.is_pending_reset()


def test_reset_derivatives_keeps_state():
    handler = _RecordingHandler(lambda t: t - 0.3, action=Action.RESET_DERIVATIVES)
    es = _state(handler)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    es.evaluate_step(it)
    y = np.array([es.event_time])
    es.step_accepted(es.event_time, y)

    assert es.reset(es.event_time, y)
    np.testing.assert_allclose(es.reset_state_value, y)
    assert handler.resets == 0


def test_reset_without_reset_action_returns_false():
    handler = _RecordingHandler(lambda t: t - 0.3, action=Action.STOP)
    es = _state(handler)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    es.evaluate_step(it)
    y = np.array([es.event_time])
    es.step_accepted(es.event_time, y)

    assert not es.reset(es.event_time, y)
    assert es.stop()
    assert es.reset_state_value is None


def test_step_accepted_without_pending_event_does_not_notify():
    handler = _RecordingHandler(lambda t: 1.0)
    es = _state(handler)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)

    es.step_accepted(1.0, np.array([1.0]))
    assert handler.events == []
    assert es.next_action is Action.CONTINUE
    assert not es.stop()


def test_non_converging_solver_is_fatal():
    es = _state(_RecordingHandler(lambda t: t - 0.3), solver=_NeverConvergingSolver())
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)

    with pytest.raises(ConvergenceError):
        es.evaluate_step(it)


def test_brent_budget_exhaustion_is_fatal():
    es = _state(_RecordingHandler(lambda t: t ** 3 - 0.027), max_iter=3)
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)

    with pytest.raises(ConvergenceError):
        es.evaluate_step(it)


def test_root_outside_bracket_is_inconsistent():
    es = _state(_RecordingHandler(lambda t: t - 0.3), solver=_RiggedSolver(5.0))
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)

    with pytest.raises(EventStateError):
        es.evaluate_step(it)


def test_solver_rejecting_verified_bracket_is_inconsistent():
    es = _state(_RecordingHandler(lambda t: t - 0.3), solver=_NoBracketSolver())
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)

    with pytest.raises(EventStateError):
        es.evaluate_step(it)


def test_rigged_root_is_pushed_past_the_crossing():
    # The solver answers a time just before the true root
    es = _state(_RecordingHandler(lambda t: t - 0.3), solver=_RiggedSolver(0.3 - 0.5 * TOL))
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)

    assert es.evaluate_step(it)
    assert es.event_time >= 0.3
    assert es.event_time - 0.3 <= TOL


def test_step_shorter_than_convergence_skips_solver():
    spy = _SpySolver()
    es = _state(_RecordingHandler(lambda t: t - 2e-11), solver=spy)
    it = _step(0.0, 5e-11)

    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)
    assert spy.calls == 0
    assert es.t0 == 5e-11

    # The crossing hidden in the tiny step is reported at the next step start
    nxt = _step(5e-11, 1.0)
    assert es.evaluate_step(nxt)
    assert es.event_time == 5e-11
    assert spy.calls == 0


def test_evaluate_step_before_reinitialize_fails_fast():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    with pytest.raises(EventStateError):
        es.evaluate_step(_step(0.0, 1.0))


def test_discontinuous_step_is_inconsistent():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    es.reinitialize_begin(_step(0.0, 1.0))
    with pytest.raises(EventStateError):
        es.evaluate_step(_step(0.5, 1.0))


def test_direction_change_requires_reinitialize():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    es.reinitialize_begin(_step(0.0, 1.0))
    with pytest.raises(EventStateError):
        es.evaluate_step(_step(0.0, -1.0))


@pytest.mark.parametrize(
    "ga, gb, forward, slope, expected",
    [
        (1.0, 2.0, True, 2, (False, False, False)),
        (-1.0, 1.0, True, 2, (True, True, True)),
        (-1.0, 1.0, False, 2, (True, False, True)),
        (1.0, -1.0, True, 0, (True, False, False)),
        (1.0, -1.0, True, 1, (True, False, True)),
        (1.0, 0.0, True, 2, (True, False, True)),
        (0.0, 0.0, True, 2, (False, False, False)),
        (-math.inf, 1.0, True, 0, (True, True, True)),
    ],
)
def test_classify_crossing(ga, gb, forward, slope, expected):
    assert tuple(_classify_crossing(ga, gb, forward, slope)) == expected


@pytest.mark.parametrize(
    "max_check, max_iter",
    [(0.0, 10), (-1.0, 10), (math.nan, 10), (1.0, 0)],
)
def test_invalid_construction_raises(max_check, max_iter):
    with pytest.raises(ValueError):
        EventState(_RecordingHandler(lambda t: 1.0), max_check, TOL, max_iter)


def test_reinitialize_begin_drops_pending_event():
    es = _state(_RecordingHandler(lambda t: t - 0.3))
    it = _step(0.0, 1.0)
    es.reinitialize_begin(it)
    assert es.evaluate_step(it)

    es.reinitialize_begin(_step(0.1, 1.0))
    assert not es.scan_state.pending_event
    assert es.event_time == math.inf


def test_event_at_large_time_is_pushed_past_root():
    # float spacing near 1e5 is wider than the convergence threshold
    c = 1e5 + 0.123
    handler = _RecordingHandler(lambda t: t - c)
    es = _state(handler, max_check=10.0, convergence=1e-12, solver=_ShortOfRootSolver())
    it = _step(c - 5.0, c + 5.0)

    es.reinitialize_begin(it)
    assert es.evaluate_step(it)
    assert es.event_time >= c
    assert es.event_time - c <= 2e-10

    t_event = es.event_time
    es.step_accepted(t_event, np.array([t_event]))
    assert not es.evaluate_step(it.restrict(t_event, c + 5.0))

    # the committed event is recognized when the step is scanned again
    es.reinitialize_begin(it)
    assert not es.evaluate_step(it)

    # and skipped when a step starts on it
    nxt = _step(t_event, c + 5.0)
    es.reinitialize_begin(nxt)
    assert es.scan_state.g0_positive
    assert not es.evaluate_step(nxt)
    assert len(handler.events) == 1
