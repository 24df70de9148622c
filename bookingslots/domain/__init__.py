"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine
from .booked_out import BookedOutDayDetector
from .duration_filter import SlotDurationFilter
from .exceptions import (
    AuthenticationError,
    BookingSlotsError,
    ConfigurationError,
    InvalidInterval,
    InvalidSchedule,
    NotFoundError,
    ProviderError,
)
from .models import (
    BookingDetails,
    BusyInterval,
    SlotStatus,
    TimePeriod,
    TimeSlot,
    WorkDay,
    WorkSchedule,
)
from .slot_grid import SlotGridBuilder

__all__ = [
    "AvailabilityEngine",
    "BookedOutDayDetector",
    "SlotDurationFilter",
    "SlotGridBuilder",
    "BookingDetails",
    "BusyInterval",
    "SlotStatus",
    "TimePeriod",
    "TimeSlot",
    "WorkDay",
    "WorkSchedule",
    "AuthenticationError",
    "BookingSlotsError",
    "ConfigurationError",
    "InvalidInterval",
    "InvalidSchedule",
    "NotFoundError",
    "ProviderError",
]
