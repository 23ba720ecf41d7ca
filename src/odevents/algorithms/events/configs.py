from dataclasses import dataclass

from odevents.algorithms.utils.config import (DEFAULT_CONVERGENCE,
                                              DEFAULT_MAX_CHECK_INTERVAL,
                                              DEFAULT_MAX_ITER)


@dataclass(frozen=True)
class _EventConfig:
    """Configuration shared by the event states of an integration run.

    Parameters
    ----------
    max_check_interval : float, default inf
        Largest time span between two samples of a switching function. Steps
        longer than this are split so that short excursions across zero are
        not missed.
    convergence : float, default 1e-12
        Absolute time tolerance of event localization. Two events closer than
        this are considered the same event.
    max_iter : int, default 50
        Evaluation budget of the root solver for one event.
    """

    max_check_interval: float = DEFAULT_MAX_CHECK_INTERVAL
    convergence: float = DEFAULT_CONVERGENCE
    max_iter: int = DEFAULT_MAX_ITER

    def __post_init__(self):
        if not self.max_check_interval > 0.0:
            raise ValueError(f"max_check_interval must be positive, got {self.max_check_interval}")
        if not self.convergence > 0.0:
            raise ValueError(f"convergence must be positive, got {self.convergence}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
