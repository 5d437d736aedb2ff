"""
Scheduling Domain Services.

Calendar arithmetic for the scheduling service: the per-day time-slot grid,
interval conflict detection, nearest-slot search and recurrence dates.
These have NO I/O dependencies - pure calculations and transformations.
"""

import math
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Iterable, Iterator, List, Optional

from core.domain import add_minutes, add_months, parse_time, to_minutes

from .models import (
    Appointment,
    ProfessionalSchedule,
    RecurrenceFrequency,
    RecurrencePattern,
    Reservation,
    TimeSlot,
)
from .policies import HolidayCalendar


# =============================================================================
# WORKING HOURS
# =============================================================================

@dataclass
class WorkingHours:
    """A professional's default working day."""
    start: time = time(8, 0)
    end: time = time(17, 0)
    lunch_start: Optional[time] = time(12, 0)
    lunch_end: Optional[time] = time(13, 0)
    slot_minutes: int = 15

    @classmethod
    def from_settings(cls, settings) -> "WorkingHours":
        return cls(
            start=parse_time(settings.workday_start),
            end=parse_time(settings.workday_end),
            lunch_start=parse_time(settings.lunch_start) if settings.lunch_start else None,
            lunch_end=parse_time(settings.lunch_end) if settings.lunch_end else None,
            slot_minutes=settings.slot_minutes,
        )

    def is_break(self, slot_start: time) -> bool:
        if self.lunch_start is None or self.lunch_end is None:
            return False
        return self.lunch_start <= slot_start < self.lunch_end


# =============================================================================
# TIME-SLOT GRID
# =============================================================================

class TimeSlotGrid:
    """
    Builds and mutates a professional's per-day slot grid.

    A reservation marks every slot fully contained in the appointment's
    interval and records what it added to the day's totals, so release
    restores the grid and the totals exactly.
    """

    def __init__(self, hours: Optional[WorkingHours] = None):
        self.hours = hours or WorkingHours()

    def build_schedule(self, professional_id: str, schedule_date: date) -> ProfessionalSchedule:
        hours = self.hours
        slots = []
        current = to_minutes(hours.start)
        end = to_minutes(hours.end)

        while current + hours.slot_minutes <= end:
            slot_start = add_minutes(time(0, 0), current)
            is_break = hours.is_break(slot_start)
            slots.append(TimeSlot(
                start_time=slot_start,
                end_time=add_minutes(slot_start, hours.slot_minutes),
                available=not is_break,
                break_time=is_break,
            ))
            current += hours.slot_minutes

        return ProfessionalSchedule(
            professional_id=professional_id,
            schedule_date=schedule_date,
            working_start=hours.start,
            working_end=hours.end,
            lunch_start=hours.lunch_start,
            lunch_end=hours.lunch_end,
            time_slots=slots,
        )

    def reserve(
        self,
        schedule: ProfessionalSchedule,
        start: time,
        duration_minutes: int,
        appointment_id: str,
        revenue: float = 0.0,
    ) -> None:
        if appointment_id in schedule.reservations:
            self.release(schedule, appointment_id)

        start_min = to_minutes(start)
        end_min = start_min + duration_minutes
        for slot in schedule.time_slots:
            if to_minutes(slot.start_time) >= start_min and to_minutes(slot.end_time) <= end_min:
                slot.available = False
                slot.appointment_id = appointment_id

        schedule.reservations[appointment_id] = Reservation(
            appointment_id=appointment_id,
            minutes=duration_minutes,
            revenue=revenue,
        )
        schedule.total_appointments += 1
        schedule.total_billable_hours = round(
            schedule.total_billable_hours + duration_minutes / 60, 4
        )
        schedule.estimated_daily_revenue = round(schedule.estimated_daily_revenue + revenue, 2)

    def release(self, schedule: ProfessionalSchedule, appointment_id: str) -> bool:
        """Undo a reservation. Returns False when nothing was reserved."""
        for slot in schedule.time_slots:
            if slot.appointment_id == appointment_id:
                slot.appointment_id = None
                slot.available = not slot.break_time

        reservation = schedule.reservations.pop(appointment_id, None)
        if reservation is None:
            return False

        schedule.total_appointments = max(0, schedule.total_appointments - 1)
        schedule.total_billable_hours = max(
            0.0, round(schedule.total_billable_hours - reservation.minutes / 60, 4)
        )
        schedule.estimated_daily_revenue = max(
            0.0, round(schedule.estimated_daily_revenue - reservation.revenue, 2)
        )
        return True

    def available_windows(
        self,
        schedule: ProfessionalSchedule,
        duration_minutes: int,
        step_all: bool = False,
    ) -> List[TimeSlot]:
        """
        Windows of consecutive free, non-break slots covering the duration.

        By default a returned window is skipped over before searching again,
        so windows never overlap. With step_all every feasible start is
        returned.
        """
        slots = schedule.time_slots
        needed = max(1, math.ceil(duration_minutes / self.hours.slot_minutes))
        windows = []
        i = 0

        while i + needed <= len(slots):
            run = slots[i:i + needed]
            if self._is_free_run(run):
                windows.append(TimeSlot(
                    start_time=run[0].start_time,
                    end_time=add_minutes(run[0].start_time, duration_minutes),
                ))
                i += 1 if step_all else needed
            else:
                i += 1

        return windows

    @staticmethod
    def _is_free_run(run: List[TimeSlot]) -> bool:
        for index, slot in enumerate(run):
            if not slot.available or slot.break_time:
                return False
            if index and run[index - 1].end_time != slot.start_time:
                return False
        return True


# =============================================================================
# CONFLICTS
# =============================================================================

class ConflictDetector:
    """
    Overlap checks between a requested interval and existing appointments.

    Intervals are half-open, so back-to-back appointments do not conflict.
    Cancelled appointments never conflict.
    """

    def find_conflicts(
        self,
        appointments: Iterable[Appointment],
        scheduled_date: date,
        start: time,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        new_start = to_minutes(start)
        new_end = new_start + duration_minutes
        conflicts = []

        for appt in appointments:
            if not appt.is_active or appt.id == exclude_id:
                continue
            if appt.scheduled_date != scheduled_date:
                continue
            existing_start = to_minutes(appt.scheduled_time)
            existing_end = existing_start + appt.duration_minutes
            if new_start < existing_end and existing_start < new_end:
                conflicts.append(appt)

        return conflicts

    def has_conflict(
        self,
        appointments: Iterable[Appointment],
        scheduled_date: date,
        start: time,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> bool:
        return bool(self.find_conflicts(
            appointments, scheduled_date, start, duration_minutes, exclude_id
        ))


class SlotFinder:
    """Picks the open window closest to a preferred start time."""

    def find_nearest(self, windows: Iterable[TimeSlot], preferred: time) -> Optional[TimeSlot]:
        target = to_minutes(preferred)
        best = None
        best_key = None
        for window in windows:
            start = to_minutes(window.start_time)
            # Ties go to the earlier window
            key = (abs(start - target), start)
            if best_key is None or key < best_key:
                best, best_key = window, key
        return best


# =============================================================================
# RECURRENCE DATES
# =============================================================================

class RecurrenceCalculator:
    """Date arithmetic for recurring series."""

    def __init__(self, max_iterations: int = 500, holidays: Optional[HolidayCalendar] = None):
        self.max_iterations = max_iterations
        self.holidays = holidays or HolidayCalendar()

    def next_date(self, current: date, pattern: RecurrencePattern) -> date:
        if pattern.pattern == RecurrenceFrequency.DAILY:
            return current + timedelta(days=pattern.frequency)

        if pattern.pattern == RecurrenceFrequency.WEEKLY:
            if pattern.days_of_week:
                candidate = current
                for _ in range(7):
                    candidate += timedelta(days=1)
                    if candidate.weekday() in pattern.days_of_week:
                        return candidate
            return current + timedelta(weeks=pattern.frequency)

        if pattern.pattern == RecurrenceFrequency.BIWEEKLY:
            return current + timedelta(weeks=2)

        if pattern.pattern == RecurrenceFrequency.MONTHLY:
            return add_months(current, pattern.frequency)

        raise ValueError(f"Unknown recurrence pattern: {pattern.pattern}")

    def end_date(self, start: date, pattern: RecurrencePattern) -> date:
        if pattern.end_date is not None:
            return pattern.end_date
        return add_months(start, 12)

    def candidate_dates(self, start: date, pattern: RecurrencePattern) -> Iterator[date]:
        """Every date the pattern lands on, first candidate being the start date."""
        end = self.end_date(start, pattern)
        current = start
        step = 0
        while current <= end and step < self.max_iterations:
            yield current
            step += 1
            current = self.next_date(current, pattern)

    def is_excluded(self, day: date, pattern: RecurrencePattern) -> Optional[str]:
        """Reason a candidate date is skipped before any booking attempt."""
        if day in pattern.exceptions:
            return "exception date"
        if pattern.skip_holidays and self.holidays.is_holiday(day):
            return "holiday"
        return None

    def next_after(self, start: date, pattern: RecurrencePattern, after: date) -> Optional[date]:
        """First bookable series date strictly after the given date, if any."""
        for day in self.candidate_dates(start, pattern):
            if day > after and self.is_excluded(day, pattern) is None:
                return day
        return None

    def project(self, start: date, pattern: RecurrencePattern) -> List[date]:
        """Dates the series is expected to book, ignoring conflicts."""
        projected = []
        for day in self.candidate_dates(start, pattern):
            if pattern.occurrence_count is not None and len(projected) >= pattern.occurrence_count:
                break
            if self.is_excluded(day, pattern) is None:
                projected.append(day)
        return projected
