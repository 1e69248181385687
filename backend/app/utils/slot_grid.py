"""
Slot Grid Builder

Expands scheduling windows into bookable (date, start, court) slots.

A slot occupies match_duration + break_minutes of wall time; its playing
interval is [start, start + match_duration). Slots are generated from the
window start while the full slot length still fits before the window end.
"""

from typing import List, Sequence

from app.utils.schedule_types import SchedulingWindow, Slot, minutes_to_time, time_to_minutes
from app.utils.scheduling_errors import (
    EmptyGridError,
    InvalidCourtCountError,
    InvalidDurationError,
    InvalidWindowError,
)


def validate_grid_parameters(
    windows: Sequence[SchedulingWindow], match_duration: int, break_minutes: int, courts: int
) -> None:
    """
    Raises:
        InvalidCourtCountError: courts < 1
        InvalidDurationError: match_duration < 1 or break_minutes < 0
        InvalidWindowError: windows overlapping on the same date
    """
    if courts is None or courts < 1:
        raise InvalidCourtCountError(f"At least one court is required, got {courts}")
    if match_duration is None or match_duration < 1:
        raise InvalidDurationError(f"Match duration must be >= 1 minute, got {match_duration}")
    if break_minutes is None or break_minutes < 0:
        raise InvalidDurationError(f"Break must be >= 0 minutes, got {break_minutes}")

    ordered = sorted(windows, key=lambda w: (w.day_date, w.start_time, w.end_time))
    for previous, current in zip(ordered, ordered[1:]):
        if previous.day_date == current.day_date and current.start_time < previous.end_time:
            raise InvalidWindowError(
                f"Windows overlap on {current.day_date}: "
                f"{previous.start_time}-{previous.end_time} and {current.start_time}-{current.end_time}"
            )


def slots_per_window(window: SchedulingWindow, slot_length: int) -> int:
    """floor(window_minutes / slot_length)"""
    return window.duration_minutes // slot_length


def grid_capacity(windows: Sequence[SchedulingWindow], match_duration: int, break_minutes: int, courts: int) -> int:
    """Number of slots build_grid would produce; 0 instead of EmptyGridError"""
    validate_grid_parameters(windows, match_duration, break_minutes, courts)
    slot_length = match_duration + break_minutes
    return sum(slots_per_window(w, slot_length) for w in windows) * courts


def build_grid(windows: Sequence[SchedulingWindow], match_duration: int, break_minutes: int, courts: int) -> List[Slot]:
    """
    Build the ordered slot grid.

    A window shorter than one slot contributes nothing. The grid as a whole
    must contain at least one slot.

    Raises:
        EmptyGridError: no windows, or no window fits a slot
        plus everything validate_grid_parameters raises
    """
    validate_grid_parameters(windows, match_duration, break_minutes, courts)
    if not windows:
        raise EmptyGridError("No scheduling windows given")

    slot_length = match_duration + break_minutes
    slots: List[Slot] = []
    for window in windows:
        start = time_to_minutes(window.start_time)
        end = time_to_minutes(window.end_time)
        while start + slot_length <= end:
            for court_number in range(1, courts + 1):
                slots.append(
                    Slot(
                        day_date=window.day_date,
                        start_time=minutes_to_time(start),
                        end_time=minutes_to_time(start + match_duration),
                        court_number=court_number,
                    )
                )
            start += slot_length

    if not slots:
        raise EmptyGridError(
            f"No window is long enough for one {slot_length}-minute slot "
            f"({match_duration} min match + {break_minutes} min break)"
        )

    slots.sort(key=lambda s: s.sort_key)
    return slots
