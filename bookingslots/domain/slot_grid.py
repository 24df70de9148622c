"""
Fixed-granularity slot grid for a single shift.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from pendulum import DateTime

from .exceptions import InvalidInterval
from .intervals import clipped_busy_spans
from .models import BusyInterval, SlotStatus, TimeSlot


class SlotGridBuilder:
    """
    Builds the slot grid of one shift and marks reserved time on it.

    Algorithm:
    1. Cut the shift into slots of ``granularity_minutes`` (the last may be shorter)
    2. Merge the busy intervals that touch the shift
    3. Reserve every slot starting inside a busy interval
    4. Insert extra slots where a busy interval starts or ends off the grid
    5. Re-link slot ends so the grid stays contiguous
    """

    def __init__(self, granularity_minutes: int = 15):
        if granularity_minutes <= 0:
            raise ValueError(f"granularity_minutes must be greater than zero, got {granularity_minutes}")
        self.granularity_minutes = granularity_minutes

    def build_grid(
        self,
        shift_start: DateTime,
        shift_end: DateTime,
        busy_intervals: Iterable[BusyInterval],
        closed_before: Optional[DateTime] = None
    ) -> List[TimeSlot]:
        """
        Build the grid for ``[shift_start, shift_end)``.

        Args:
            shift_start: Start of the shift
            shift_end: End of the shift
            busy_intervals: Busy intervals, already in the shift's time zone
            closed_before: Slots starting before this instant are CLOSED rather than OPEN

        Returns:
            Contiguous slots sorted by start time

        Raises:
            InvalidInterval: If the shift ends before it starts
        """
        if shift_end < shift_start:
            raise InvalidInterval(f"Shift end {shift_end} is before shift start {shift_start}")

        slots: Dict[DateTime, TimeSlot] = {}

        cursor = shift_start
        while cursor < shift_end:
            slot_end = min(cursor.add(minutes=self.granularity_minutes), shift_end)
            slots[cursor] = TimeSlot(
                start=cursor,
                end=slot_end,
                status=self._free_status(cursor, closed_before)
            )
            cursor = slot_end

        if not slots:
            return []

        for busy_start, busy_end in clipped_busy_spans(busy_intervals, shift_start, shift_end):
            for start in list(slots):
                if busy_start <= start < busy_end:
                    slots[start] = replace(slots[start], status=SlotStatus.RESERVED)

            if busy_start not in slots:
                slots[busy_start] = TimeSlot(
                    start=busy_start,
                    end=busy_end,
                    status=SlotStatus.RESERVED,
                    outside_interval=True
                )

            # The rest of the shift is taken
            if busy_end >= shift_end:
                break

            if busy_end not in slots:
                slots[busy_end] = TimeSlot(
                    start=busy_end,
                    end=shift_end,
                    status=self._free_status(busy_end, closed_before),
                    outside_interval=True
                )

        return self._link_slot_ends(sorted(slots.values()))

    @staticmethod
    def _free_status(start: DateTime, closed_before: Optional[DateTime]) -> SlotStatus:
        if closed_before is not None and start < closed_before:
            return SlotStatus.CLOSED
        return SlotStatus.OPEN

    @staticmethod
    def _link_slot_ends(ordered: List[TimeSlot]) -> List[TimeSlot]:
        """Each slot ends where the next one starts; the last keeps its end."""
        linked = [
            replace(slot, end=following.start)
            for slot, following in zip(ordered, ordered[1:])
        ]
        linked.append(ordered[-1])
        return linked
