"""
Custom exceptions for the algorithms package.
"""

class OdeventsError(Exception):
    """Base exception for odevents errors.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class ConvergenceError(OdeventsError):
    """Raised when an algorithm fails to converge.
    
    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class NoBracketingError(OdeventsError):
    """Raised when a root solver is given an interval without a sign change.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class EventStateError(OdeventsError):
    """Raised when an event state is driven out of sequence or reaches an
    inconsistent configuration.

    This is a defect in the caller (or in a plugged-in solver), not a
    numerically hard problem.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class IntegrationError(OdeventsError):
    """Raised when the underlying step solver fails.
    
    Parameters
    ----------
    message : str
        The error message.
    """
    
    def __init__(self, message: str):
        super().__init__(message)
