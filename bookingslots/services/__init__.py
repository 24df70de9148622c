"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, BusyIntervalSource

__all__ = ["AvailabilityService", "BusyIntervalSource"]
