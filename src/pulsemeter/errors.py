"""Exception types raised by pulsemeter."""


class PulsemeterError(Exception):
    """Base class for pulsemeter errors."""


class InvalidInput(PulsemeterError, ValueError):
    """Caller supplied a missing or malformed batch, period, or date.

    Raised before any processing or storage access takes place.
    """
