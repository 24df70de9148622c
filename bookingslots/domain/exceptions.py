"""
Domain-specific exception hierarchy for the booking slots application.
"""


class BookingSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidInterval(BookingSlotsError, ValueError):
    """Raised when an interval, slot or period does not start before it ends."""


class InvalidSchedule(BookingSlotsError, ValueError):
    """Raised when the weekly work schedule is inconsistent or incomplete."""


class ConfigurationError(BookingSlotsError):
    """Raised when the configuration cannot be loaded or resolved."""


class ProviderError(BookingSlotsError):
    """Raised when calendar data cannot be fetched, created or deleted."""


class NotFoundError(ProviderError):
    """Raised when the provider does not know the requested event."""


class AuthenticationError(ProviderError):
    """Raised when authentication or token handling fails."""
