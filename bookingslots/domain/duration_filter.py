"""
Start times that can hold a service of a given length.
"""

from typing import List, Optional, Sequence

from .models import SlotStatus, TimeSlot


class SlotDurationFilter:
    """
    Finds grid slots where a service of ``service_duration_minutes`` fits
    inside one contiguous run of open slots.
    """

    def available_starts(
        self,
        grid: Sequence[TimeSlot],
        service_duration_minutes: int
    ) -> List[TimeSlot]:
        """
        Args:
            grid: Contiguous slots sorted by start time (see SlotGridBuilder)
            service_duration_minutes: Length of the requested service

        Returns:
            One open slot per usable start, spanning from the candidate's start
            to the end of the slot that covers the service's end
        """
        available: List[TimeSlot] = []

        for index, candidate in enumerate(grid):
            if not candidate.is_open:
                continue

            remaining = grid[index:]
            service_end = candidate.start.add(minutes=service_duration_minutes)
            cover = self._covering_slot(remaining, service_end)

            if cover is None:
                continue

            # Anything but an open slot in between breaks the run
            if any(slot.status is not SlotStatus.OPEN for slot in remaining if slot.start < cover.end):
                continue

            available.append(TimeSlot(start=candidate.start, end=cover.end))

        return available

    @staticmethod
    def _covering_slot(slots: Sequence[TimeSlot], service_end) -> Optional[TimeSlot]:
        for slot in slots:
            if slot.end >= service_end and slot.is_open:
                return slot
        return None
