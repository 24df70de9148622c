"""
Interval sweeps shared by the slot grid and the availability engine.

Spans are plain ``(start, end)`` tuples so they can describe both clipped busy
intervals and the gaps between them without the TimePeriod invariant.
"""

from typing import Iterable, List, Tuple

from pendulum import DateTime

from .models import BusyInterval

Span = Tuple[DateTime, DateTime]


def merge_spans(spans: Iterable[Span]) -> List[Span]:
    """
    Merge overlapping, nested or touching spans in one sweep.

    Example: [10:00-14:00, 11:00-12:00, 14:00-15:00] -> [10:00-15:00]
    """
    merged: List[Span] = []

    for start, end in sorted(spans, key=lambda span: span[0]):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))

    return merged


def clipped_busy_spans(
    intervals: Iterable[BusyInterval],
    lower: DateTime,
    upper: DateTime
) -> List[Span]:
    """
    Clip busy intervals to ``[lower, upper]`` and merge them.

    Zero-length intervals and intervals outside the bounds are dropped.
    """
    return merge_spans(
        (max(interval.start, lower), min(interval.end, upper))
        for interval in intervals
        if interval.end > interval.start and interval.overlaps(lower, upper)
    )


def subtract_spans(lower: DateTime, upper: DateTime, busy: List[Span]) -> List[Span]:
    """
    Subtract merged busy spans from ``[lower, upper]``, yielding the gaps.

    Example:
    Window: 09:00 - 17:00
    Busy: [10:00-11:00, 14:00-15:00]
    Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
    """
    gaps: List[Span] = []
    cursor = lower

    for busy_start, busy_end in busy:
        if cursor < busy_start:
            gaps.append((cursor, min(busy_start, upper)))
        cursor = max(cursor, busy_end)

    if cursor < upper:
        gaps.append((cursor, upper))

    return gaps
