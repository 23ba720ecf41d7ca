"""Integrate with SciPy step solvers while tracking switching functions.

The integration scheme itself is delegated to the :class:`scipy.integrate.OdeSolver`
classes; this module only drives them one accepted step at a time and feeds
each step's dense output to an
:class:`~odevents.algorithms.events.manager.EventManager`.
"""

from typing import Callable, Optional, Sequence

import numpy as np
from scipy.integrate import BDF, DOP853, LSODA, RK23, RK45, Radau

from odevents.algorithms.events.configs import _EventConfig
from odevents.algorithms.events.handlers import EventHandler
from odevents.algorithms.events.manager import EventManager
from odevents.algorithms.integrators.base import _Integrator
from odevents.algorithms.integrators.interpolators import DenseStepInterpolator
from odevents.algorithms.integrators.types import _Solution
from odevents.algorithms.utils.config import DEFAULT_ATOL, DEFAULT_RTOL
from odevents.algorithms.utils.exceptions import IntegrationError
from odevents.utils.log_config import logger

# Solver class and formal order of the propagated solution
_METHODS = {
    "RK23": (RK23, 3),
    "RK45": (RK45, 5),
    "DOP853": (DOP853, 8),
    "Radau": (Radau, 5),
    "BDF": (BDF, None),
    "LSODA": (LSODA, None),
}


class ScipyIntegrator(_Integrator):
    """Integrate an ODE with a SciPy step solver and event handlers.

    Parameters
    ----------
    method : {'RK23', 'RK45', 'DOP853', 'Radau', 'BDF', 'LSODA'}, default 'DOP853'
        SciPy solver class.
    rtol, atol : float
        Relative and absolute tolerances of the step solver.
    max_step : float, default inf
        Largest step the solver may take.
    max_steps : int, default 100000
        Maximum number of accepted steps before giving up.
    event_config : :class:`~odevents.algorithms.events.configs._EventConfig`, optional
        Event localization parameters shared by all handlers.
    **options
        Extra keyword arguments forwarded to the SciPy solver constructor.

    Examples
    --------
    Stop a free fall when the height reaches zero::

        ground = FunctionEventHandler(lambda t, y: y[0], action=Action.STOP)
        sol = ScipyIntegrator().integrate(
            lambda t, y: np.array([y[1], -9.81]), np.array([10.0, 0.0]),
            (0.0, 5.0), handlers=[ground],
        )
        sol.times[-1]   # ~ sqrt(2 * 10 / 9.81)
    """

    def __init__(
        self,
        method: str = "DOP853",
        *,
        rtol: float = DEFAULT_RTOL,
        atol: float = DEFAULT_ATOL,
        max_step: float = np.inf,
        max_steps: int = 100000,
        event_config: Optional[_EventConfig] = None,
        **options,
    ):
        if method not in _METHODS:
            raise ValueError(f"Unknown method '{method}'; expected one of {sorted(_METHODS)}")
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        super().__init__(method, **options)
        self._solver_cls, self._order = _METHODS[method]
        self.rtol = rtol
        self.atol = atol
        self.max_step = max_step
        self.max_steps = max_steps
        self.event_config = event_config if event_config is not None else _EventConfig()

    @property
    def order(self) -> Optional[int]:
        return self._order

    def integrate(
        self,
        rhs: Callable[[float, np.ndarray], np.ndarray],
        y0: np.ndarray,
        t_span: Sequence[float],
        *,
        handlers: Sequence[EventHandler] = (),
        **kwargs,
    ) -> _Solution:
        """Integrate *rhs* over *t_span*, handling events on the way.

        Integration stops at ``t_span[1]`` or at the first event whose handler
        returns ``Action.STOP``. A ``RESET_STATE`` or ``RESET_DERIVATIVES``
        action restarts the step solver from the event.

        Raises
        ------
        ValueError
            If the inputs are inconsistent.
        :class:`~odevents.algorithms.utils.exceptions.IntegrationError`
            If the step solver fails or ``max_steps`` is exceeded.
        :class:`~odevents.algorithms.utils.exceptions.ConvergenceError`
            If an event cannot be localized.
        """
        self.validate_inputs(rhs, y0, t_span)

        y0 = np.asarray(y0, dtype=float)
        t0, t_end = float(t_span[0]), float(t_span[1])

        constant = self._maybe_constant_solution(y0, t0, t_end)
        if constant is not None:
            return constant

        manager = EventManager.from_handlers(handlers, self.event_config)
        manager.init(t0, y0.copy(), t_end)

        times = [t0]
        states = [y0.copy()]
        events = []

        solver = self._make_solver(rhs, t0, y0, t_end)
        n_steps = 0
        while True:
            message = solver.step()
            if solver.status == "failed":
                raise IntegrationError(f"{self} failed at t={solver.t}: {message}")

            n_steps += 1
            if n_steps > self.max_steps:
                raise IntegrationError(f"{self} exceeded {self.max_steps} steps before t={t_end}")

            interpolator = DenseStepInterpolator(solver.t_old, solver.t, solver.dense_output())
            outcome = manager.accept_step(interpolator)

            events.extend(outcome.events)
            times.append(outcome.t)
            states.append(np.array(outcome.state, dtype=float))

            if outcome.stop:
                logger.info("Integration stopped by event at t=%s", outcome.t)
                break

            if outcome.reset:
                if outcome.t == t_end:
                    break
                logger.debug("Restarting %s from t=%s after reset", self, outcome.t)
                solver = self._make_solver(rhs, outcome.t, outcome.state, t_end)
                continue

            if solver.status == "finished":
                break

        logger.debug("%s finished: %d steps, %d events", self, n_steps, len(events))
        return _Solution(times=np.array(times), states=np.vstack(states), events=tuple(events))

    def _make_solver(self, rhs, t0: float, y0: np.ndarray, t_end: float):
        return self._solver_cls(
            rhs,
            t0,
            np.array(y0, dtype=float),
            t_end,
            rtol=self.rtol,
            atol=self.atol,
            max_step=self.max_step,
            **self.options,
        )

    def __repr__(self):
        return (f"{self.__class__.__name__}(method='{self.name}', rtol={self.rtol}, atol={self.atol}, "
                f"event_config={self.event_config})")
