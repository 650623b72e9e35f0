"""
Error taxonomy for the Mark Six combination engine.

EmptyHistory and MissingLastDraw are fatal and raised at the generator
entry points. InsufficientSelection is a warning: the generators degrade
to a fallback weighted path instead of failing.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class EmptyHistory(EngineError, ValueError):
    """No historical draw records were supplied."""

    def __init__(self, message="No historical data provided"):
        super().__init__(message)


class MissingLastDraw(EngineError, ValueError):
    """A follow-on family generator was called without a last-draw seed."""

    def __init__(self, message="No last draw numbers provided"):
        super().__init__(message)


class InvalidDraw(EngineError, ValueError):
    """A draw record breaks the 6 + 1 distinct numbers in 1-49 invariant."""


class InsufficientSelection(UserWarning):
    """The user's selection pool is smaller than one combination."""
