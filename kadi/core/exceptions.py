"""
Custom exceptions for the application.
"""


class KadiException(Exception):
    """Base exception for all Kadi application exceptions."""
    pass


class NotFoundError(KadiException):
    """Raised when a requested resource is not found."""
    pass


class StoreError(KadiException):
    """Raised when the card/progress store cannot be read or written."""
    pass


class SessionStateError(KadiException):
    """Raised when a trainer action is not valid in the current session state."""
    pass
