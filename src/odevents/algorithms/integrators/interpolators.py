"""Adapt dense outputs to the step interpolator contract used by event states."""

from typing import Callable

import numpy as np


class DenseStepInterpolator:
    """Expose a dense output ``t -> y`` as the interpolator of one step.

    Parameters
    ----------
    previous_time : float
        Start of the step (in integration order).
    current_time : float
        End of the step. ``current_time < previous_time`` means the
        integration runs backward.
    dense_fn : Callable[[float], numpy.ndarray]
        Continuous representation of the state over the step, such as the
        :class:`scipy.integrate.DenseOutput` of an accepted step.
    forward : bool, optional
        Integration direction. Inferred from the time span when omitted;
        required for a zero-length step.

    Notes
    -----
    *dense_fn* may be evaluated slightly outside the step (event states
    sample one tolerance past a committed event), so it should extrapolate
    gracefully.
    """

    def __init__(
        self,
        previous_time: float,
        current_time: float,
        dense_fn: Callable[[float], np.ndarray],
        forward: "bool | None" = None,
    ):
        self._previous_time = float(previous_time)
        self._current_time = float(current_time)
        self._dense_fn = dense_fn
        if forward is None:
            forward = self._current_time >= self._previous_time
        self._forward = bool(forward)
        self._interpolated_time = self._current_time
        self._cached_time = None
        self._cached_state = None

    @property
    def previous_time(self) -> float:
        return self._previous_time

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def forward(self) -> bool:
        return self._forward

    @property
    def interpolated_time(self) -> float:
        return self._interpolated_time

    def set_interpolated_time(self, t: float) -> None:
        self._interpolated_time = float(t)

    def get_interpolated_state(self) -> np.ndarray:
        """Return a copy of the state at the current interpolated time."""
        t = self._interpolated_time
        if self._cached_time != t:
            self._cached_state = np.asarray(self._dense_fn(t), dtype=float)
            self._cached_time = t
        return self._cached_state.copy()

    def restrict(self, previous_time: float, current_time: float) -> "DenseStepInterpolator":
        """Return a view of the sub-interval ``[previous_time, current_time]``.

        The view shares the dense output and keeps the integration direction.
        """
        return DenseStepInterpolator(previous_time, current_time, self._dense_fn, forward=self._forward)

    def __repr__(self):
        return (f"{self.__class__.__name__}(previous_time={self._previous_time}, "
                f"current_time={self._current_time}, forward={self._forward})")
