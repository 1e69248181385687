"""
Exceptions raised by the grouping, fixture and scheduling pipeline.

Validation errors are raised before anything is written. Capacity
shortfall is never an error; it is reported as unscheduled fixtures.
"""


class SchedulingError(Exception):
    """Base exception for scheduling errors"""

    pass


class SchedulingValidationError(SchedulingError):
    """Input rejected before any computation or write"""

    pass


class EmptyInputError(SchedulingValidationError):
    """No confirmed pairs to partition"""

    pass


class InvalidGroupSizeError(SchedulingValidationError):
    """Target group size below 2"""

    pass


class InvalidCourtCountError(SchedulingValidationError):
    """Fewer than one court available"""

    pass


class InvalidDurationError(SchedulingValidationError):
    """Match or break duration out of range"""

    pass


class InvalidWindowError(SchedulingValidationError):
    """Scheduling window is inverted or overlaps another window on the same date"""

    pass


class EmptyGridError(SchedulingValidationError):
    """Windows yield no usable slot"""

    pass


class AllocationInputError(SchedulingValidationError):
    """Allocator input is malformed (unknown group, duplicate slot)"""

    pass


class GroupLayoutConflictError(SchedulingValidationError):
    """Stored group memberships disagree with the computed partition"""

    pass


class ScheduleHasResultsError(SchedulingError):
    """Fixtures with reported results would be destroyed by a clear"""

    pass


class ScheduleBusyError(SchedulingError):
    """Another generation for the same tournament is still running"""

    pass
