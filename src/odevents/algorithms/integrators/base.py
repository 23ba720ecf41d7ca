"""Provide abstract interfaces for numerical time integration with events.

References
----------
Hairer, E., Norsett, S. P., & Wanner, G. (1993). "Solving Ordinary
Differential Equations I: Non-stiff Problems".
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

import numpy as np

from odevents.algorithms.events.handlers import EventHandler
from odevents.algorithms.integrators.types import _Solution


class _Integrator(ABC):
    """Define the minimal interface that every concrete integrator must satisfy.

    Parameters
    ----------
    name : str
        Human-readable identifier of the method.
    **options
        Extra keyword arguments left untouched and stored in
        :attr:`~odevents.algorithms.integrators.base._Integrator.options` for later use by subclasses.

    Notes
    -----
    Subclasses *must* implement the abstract members :func:`~odevents.algorithms.integrators.base._Integrator.order` and
    :func:`~odevents.algorithms.integrators.base._Integrator.integrate`.
    """
    
    def __init__(self, name: str, **options):
        self.name = name
        self.options = options
    
    @property
    @abstractmethod
    def order(self) -> Optional[int]:
        """Order of accuracy of the integrator.
        
        Returns
        -------
        int or None
            Order of the method, or None if not applicable
        """
        pass
    
    @abstractmethod
    def integrate(
        self,
        rhs: Callable[[float, np.ndarray], np.ndarray],
        y0: np.ndarray,
        t_span: Sequence[float],
        *,
        handlers: Sequence[EventHandler] = (),
        **kwargs
    ) -> _Solution:
        """Integrate ``dy/dt = rhs(t, y)`` from initial conditions.
        
        Parameters
        ----------
        rhs : Callable[[float, numpy.ndarray], numpy.ndarray]
            Right-hand side of the system.
        y0 : numpy.ndarray
            Initial state vector, shape (n_dim,)
        t_span : Sequence[float]
            Initial and final times. The final time may precede the initial
            time for backward integration.
        handlers : Sequence[EventHandler]
            Event handlers checked on every step.
        **kwargs
            Additional integration options
            
        Returns
        -------
        :class:`~odevents.algorithms.integrators.types._Solution`
            Integration results containing times, states and events
            
        Raises
        ------
        ValueError
            If the inputs are inconsistent
        """
        pass

    def validate_rhs(self, rhs) -> None:
        """Check that *rhs* is callable.

        Raises
        ------
        ValueError
            If *rhs* cannot be called.
        """
        if not callable(rhs):
            raise ValueError(f"Right-hand side must be callable for {self.name}")

    def validate_inputs(
        self,
        rhs,
        y0: np.ndarray,
        t_span: Sequence[float],
    ) -> None:
        """Validate that the input arguments form a consistent integration task.

        Parameters
        ----------
        rhs : Callable
            Right-hand side to be integrated.
        y0 : numpy.ndarray
            Initial state vector.
        t_span : Sequence[float]
            Initial and final times.

        Raises
        ------
        ValueError
            If any of the following conditions holds:
            - *rhs* is not callable.
            - *y0* is not a non-empty 1-D array of finite values.
            - *t_span* does not hold exactly two finite times.
        """
        self.validate_rhs(rhs)

        y0 = np.asarray(y0)
        if y0.ndim != 1 or y0.size == 0:
            raise ValueError(f"Initial state must be a non-empty 1-D array, got shape {y0.shape}")
        if not np.all(np.isfinite(y0)):
            raise ValueError("Initial state must be finite")

        if len(t_span) != 2:
            raise ValueError(f"t_span must hold exactly 2 times, got {len(t_span)}")
        if not np.all(np.isfinite(np.asarray(t_span, dtype=float))):
            raise ValueError("t_span must be finite")

    def __str__(self):
        return f"ODEVENTS-{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', options={self.options})"

    def _maybe_constant_solution(
        self,
        y0: np.ndarray,
        t0: float,
        t_end: float,
    ) -> "_Solution | None":
        """Return constant-state solution when the span is empty; else None.

        This centralizes the zero-span short-circuit so concrete integrators
        can simply call this helper at the top of their integrate methods.
        Any non-empty span is integrated, however short relative to *t0*.
        """
        if t0 == t_end:
            times = np.array([t0, t_end], dtype=float)
            states = np.repeat(y0[None, :], repeats=2, axis=0)
            return _Solution(times=times, states=states)
        return None
