"""Event-aware integration driven by SciPy step solvers."""

from .interpolators import DenseStepInterpolator
from .scipy_ivp import ScipyIntegrator
from .types import _Solution as Solution

__all__ = [
    "DenseStepInterpolator",
    "ScipyIntegrator",
    "Solution",
]
