"""Scheduling domain layer - pure business logic."""

from .policies import (
    BillingPolicy,
    CancellationPolicy,
    HolidayCalendar,
    SessionLimitPolicy,
    TransitionPolicy,
)
from .services import (
    ConflictDetector,
    RecurrenceCalculator,
    SlotFinder,
    TimeSlotGrid,
    WorkingHours,
)

__all__ = [
    "BillingPolicy",
    "CancellationPolicy",
    "HolidayCalendar",
    "SessionLimitPolicy",
    "TransitionPolicy",
    "ConflictDetector",
    "RecurrenceCalculator",
    "SlotFinder",
    "TimeSlotGrid",
    "WorkingHours",
]
