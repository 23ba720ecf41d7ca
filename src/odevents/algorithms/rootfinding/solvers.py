"""Provide bracketed scalar root solvers with an evaluation budget.

Both solvers implement
:class:`~odevents.algorithms.events.protocols.RootSolverProtocol`:
``solve(max_evaluations, f, lower, upper) -> float``. Bounds may be given in
any order, which lets callers pass them along the integration direction.

References
----------
Brent, R. P. (1973). "Algorithms for Minimization without Derivatives".
"""

from typing import Callable

import numpy as np
from scipy.optimize import brentq

from odevents.algorithms.utils.exceptions import (ConvergenceError,
                                                  NoBracketingError)

_MIN_RELATIVE_ACCURACY = 4.0 * np.finfo(float).eps


class _BudgetExhausted(Exception):
    pass


class _BracketedSolver:
    """Shared evaluation counting and bracket validation."""

    def __init__(self, absolute_accuracy: float):
        if not absolute_accuracy > 0.0:
            raise ValueError(f"absolute_accuracy must be positive, got {absolute_accuracy}")
        self._absolute_accuracy = float(absolute_accuracy)
        self._evaluations = 0

    @property
    def absolute_accuracy(self) -> float:
        return self._absolute_accuracy

    @property
    def evaluations(self) -> int:
        """Number of function evaluations used by the last call to ``solve``."""
        return self._evaluations

    def _counted(self, f: Callable[[float], float], max_evaluations: int) -> Callable[[float], float]:
        def wrapped(x: float) -> float:
            if self._evaluations >= max_evaluations:
                raise _BudgetExhausted()
            self._evaluations += 1
            return float(f(x))
        return wrapped

    def _prepare(self, max_evaluations, f, lower, upper):
        """Order the bounds and evaluate the end points.

        Returns ``(lo, f_lo, hi, f_hi, fn)``; *fn* counts evaluations and
        serves the end point values from cache.
        """
        self._evaluations = 0
        lo, hi = (lower, upper) if lower <= upper else (upper, lower)
        counted = self._counted(f, max_evaluations)
        try:
            f_lo = counted(lo)
            f_hi = counted(hi)
        except _BudgetExhausted:
            raise ConvergenceError(
                f"Evaluation budget of {max_evaluations} too small to bracket [{lo}, {hi}]"
            ) from None

        if (f_lo > 0.0 and f_hi > 0.0) or (f_lo < 0.0 and f_hi < 0.0):
            raise NoBracketingError(
                f"f({lo})={f_lo} and f({hi})={f_hi} do not bracket a root"
            )

        cache = {lo: f_lo, hi: f_hi}

        def fn(x: float) -> float:
            if x in cache:
                return cache[x]
            return counted(x)

        return lo, f_lo, hi, f_hi, fn

    def solve(self, max_evaluations: int, f: Callable[[float], float], lower: float, upper: float) -> float:
        lo, f_lo, hi, f_hi, fn = self._prepare(max_evaluations, f, lower, upper)
        if f_lo == 0.0:
            return lo
        if f_hi == 0.0:
            return hi
        try:
            return self._solve_bracketed(max_evaluations, fn, lo, f_lo, hi, f_hi)
        except _BudgetExhausted:
            raise ConvergenceError(
                f"{self.__class__.__name__} did not converge within {max_evaluations} evaluations on [{lo}, {hi}]"
            ) from None

    def _solve_bracketed(self, max_evaluations, fn, lo, f_lo, hi, f_hi) -> float:
        raise NotImplementedError


class BrentSolver(_BracketedSolver):
    """Locate roots with Brent's method (:func:`scipy.optimize.brentq`).

    Parameters
    ----------
    absolute_accuracy : float, default 1e-12
        Absolute tolerance on the root (``xtol``).
    relative_accuracy : float, default 4 * machine epsilon
        Relative tolerance on the root (``rtol``).

    Raises
    ------
    ValueError
        If *relative_accuracy* is below the minimum accepted by SciPy.
    """

    def __init__(self, absolute_accuracy: float = 1e-12, relative_accuracy: float = _MIN_RELATIVE_ACCURACY):
        super().__init__(absolute_accuracy)
        if relative_accuracy < _MIN_RELATIVE_ACCURACY:
            raise ValueError(
                f"relative_accuracy must be at least {_MIN_RELATIVE_ACCURACY}, got {relative_accuracy}"
            )
        self._relative_accuracy = float(relative_accuracy)

    @property
    def relative_accuracy(self) -> float:
        return self._relative_accuracy

    def _solve_bracketed(self, max_evaluations, fn, lo, f_lo, hi, f_hi) -> float:
        root, info = brentq(
            fn,
            lo,
            hi,
            xtol=self._absolute_accuracy,
            rtol=self._relative_accuracy,
            maxiter=max_evaluations,
            full_output=True,
            disp=False,
        )
        if not info.converged:
            raise ConvergenceError(
                f"Brent solver did not converge within {max_evaluations} evaluations on [{lo}, {hi}] ({info.flag})"
            )
        return float(root)

    def __repr__(self):
        return (f"{self.__class__.__name__}(absolute_accuracy={self._absolute_accuracy}, "
                f"relative_accuracy={self._relative_accuracy})")


class BisectionSolver(_BracketedSolver):
    """Locate roots by interval halving.

    Slower than :class:`~odevents.algorithms.rootfinding.solvers.BrentSolver`
    but insensitive to the shape of *f*; each evaluation halves the bracket.

    Parameters
    ----------
    absolute_accuracy : float, default 1e-12
        The bracket is halved until its width drops below this value.
    """

    def __init__(self, absolute_accuracy: float = 1e-12):
        super().__init__(absolute_accuracy)

    def _solve_bracketed(self, max_evaluations, fn, lo, f_lo, hi, f_hi) -> float:
        a_t, a_g = lo, f_lo
        b_t = hi

        while abs(b_t - a_t) > self._absolute_accuracy:
            mid_t = 0.5 * (a_t + b_t)
            if mid_t == a_t or mid_t == b_t:
                # Floating point resolution reached
                break
            g_mid = fn(mid_t)
            if g_mid == 0.0:
                return mid_t

            # Re-bracket
            if a_g * g_mid < 0.0:
                b_t = mid_t
            else:
                a_t = mid_t
                a_g = g_mid

        return 0.5 * (a_t + b_t)

    def __repr__(self):
        return f"{self.__class__.__name__}(absolute_accuracy={self._absolute_accuracy})"
