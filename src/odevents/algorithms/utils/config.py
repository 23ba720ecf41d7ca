"""Package-wide numerical constants."""

FASTMATH = False  # Global flag for Numba's fastmath option

# Absolute tolerance used when two times are supposed to be identical
TIME_EPSILON = 1e-14

# Event localization defaults
DEFAULT_MAX_CHECK_INTERVAL = float("inf")
DEFAULT_CONVERGENCE = 1e-12
DEFAULT_MAX_ITER = 50

# Integration defaults
DEFAULT_RTOL = 1e-10
DEFAULT_ATOL = 1e-12
