from typing import Callable, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class StepInterpolatorProtocol(Protocol):
    """Protocol for the dense view of one integration step.

    The interval ``[previous_time, current_time]`` is ordered along the
    integration direction, so ``previous_time > current_time`` when
    integrating backward.
    """

    @property
    def previous_time(self) -> float:
        ...

    @property
    def current_time(self) -> float:
        ...

    @property
    def forward(self) -> bool:
        ...

    def set_interpolated_time(self, t: float) -> None:
        """Move the interpolation point to *t*."""
        ...

    def get_interpolated_state(self) -> np.ndarray:
        """Return the state at the current interpolation point."""
        ...


@runtime_checkable
class RootSolverProtocol(Protocol):
    """Protocol for bracketed scalar root solvers.
    
    Attributes
    ----------
    solve : Callable
        Locate a root of *f* between *lower* and *upper* using at most
        *max_evaluations* evaluations of *f*.
    """

    def solve(
        self,
        max_evaluations: int,
        f: Callable[[float], float],
        lower: float,
        upper: float,
    ) -> float:
        """Return a root of *f* between *lower* and *upper*.

        Parameters
        ----------
        max_evaluations : int
            Evaluation budget.
        f : Callable[[float], float]
            Scalar function; ``f(lower)`` and ``f(upper)`` bracket a root.
        lower, upper : float
            Interval bounds, in any order.

        Returns
        -------
        float
            Root estimate.

        Raises
        ------
        :class:`~odevents.algorithms.utils.exceptions.ConvergenceError`
            If the budget is exhausted before the root is isolated.
        """
        ...
