"""
Scheduling Domain Policies.

Pure business rules for clinical appointment scheduling.
These classes have NO I/O dependencies - they can be unit tested in isolation.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from core.domain import PolicyDecision, PolicyEngine, hours_between, week_key

from .models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    CancellationActor,
    RejectionReason,
)


# =============================================================================
# CONSTANTS
# =============================================================================

# Regulatory session caps per appointment type: (window, max sessions).
# Weekly windows are ISO weeks (Monday through Sunday).
SESSION_LIMITS: Dict[AppointmentType, Tuple[str, int]] = {
    AppointmentType.EVALUATION: ("year", 2),
    AppointmentType.INDIVIDUAL_THERAPY: ("week", 3),
    AppointmentType.GROUP_THERAPY: ("week", 2),
    AppointmentType.TELETHERAPY: ("month", 8),
}

# Procedure codes that need prior authorization from the payer
PRIOR_AUTH_CPT_CODES = frozenset({"92607", "92608", "98966"})

# Clinic closures as (month, day), every year
FIXED_HOLIDAYS = ((1, 1), (7, 4), (12, 25))

# Session descriptions handed to the session logging collaborator
SESSION_DESCRIPTIONS = {
    AppointmentType.EVALUATION: "AAC Evaluation",
    AppointmentType.INDIVIDUAL_THERAPY: "Individual AAC Therapy",
    AppointmentType.GROUP_THERAPY: "Group AAC Therapy",
    AppointmentType.TELETHERAPY: "AAC Teletherapy Session",
    AppointmentType.CONSULTATION: "AAC Consultation",
    AppointmentType.ASSESSMENT: "AAC Assessment",
}

# Allowed lifecycle moves; anything not listed is an invalid transition
ALLOWED_TRANSITIONS: Dict[AppointmentStatus, frozenset] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.RESCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def requires_prior_auth(cpt_code: str) -> bool:
    return cpt_code in PRIOR_AUTH_CPT_CODES


def session_description(appointment_type: AppointmentType) -> str:
    return SESSION_DESCRIPTIONS.get(appointment_type, "AAC Session")


# =============================================================================
# HOLIDAYS
# =============================================================================

class HolidayCalendar:
    """Fixed yearly holidays plus any configured clinic closure dates."""

    def __init__(self, extra_dates: Iterable[date] = ()):
        self._extra = set(extra_dates)

    def is_holiday(self, day: date) -> bool:
        return (day.month, day.day) in FIXED_HOLIDAYS or day in self._extra


# =============================================================================
# SESSION LIMITS
# =============================================================================

def limit_window(window: str, day: date) -> tuple:
    """Key identifying the cap window a date falls in."""
    if window == "week":
        return week_key(day)
    if window == "month":
        return (day.year, day.month)
    if window == "year":
        return (day.year,)
    raise ValueError(f"Unknown limit window: {window}")


@dataclass
class LimitContext:
    """Context for a regulatory session-limit check."""
    patient_id: str
    appointment_type: AppointmentType
    target_date: date
    patient_appointments: List[Appointment] = field(default_factory=list)
    exclude_id: Optional[str] = None


class SessionLimitPolicy(PolicyEngine):
    """
    Payer caps on how many sessions of a kind a patient may have.

    Only non-cancelled appointments of the same kind count. Kinds without
    a configured cap are always approved.
    """

    def __init__(self, limits: Optional[Dict[AppointmentType, Tuple[str, int]]] = None):
        self.limits = limits if limits is not None else SESSION_LIMITS

    def evaluate(self, context: LimitContext) -> PolicyDecision:
        limit = self.limits.get(context.appointment_type)
        if limit is None:
            return PolicyDecision.approve("No session cap for this appointment type")

        window, cap = limit
        target_window = limit_window(window, context.target_date)
        count = sum(
            1
            for appt in self._counted(context.patient_appointments, context.appointment_type)
            if appt.id != context.exclude_id
            and limit_window(window, appt.scheduled_date) == target_window
        )

        if count >= cap:
            return PolicyDecision.deny(
                RejectionReason.REGULATORY_LIMIT_EXCEEDED.value,
                window=window,
                cap=cap,
                count=count,
            )
        return PolicyDecision.approve(
            "Within session cap", window=window, cap=cap, count=count
        )

    def series_warnings(
        self,
        appointment_type: AppointmentType,
        projected_dates: Sequence[date],
        patient_appointments: Sequence[Appointment] = (),
    ) -> List[str]:
        """Windows where existing plus projected sessions would exceed the cap."""
        limit = self.limits.get(appointment_type)
        if limit is None:
            return []

        window, cap = limit
        counts: Dict[tuple, int] = {}
        for appt in self._counted(patient_appointments, appointment_type):
            key = limit_window(window, appt.scheduled_date)
            counts[key] = counts.get(key, 0) + 1
        for day in projected_dates:
            key = limit_window(window, day)
            counts[key] = counts.get(key, 0) + 1

        warnings = []
        for key in sorted(counts):
            if counts[key] > cap:
                label = "-".join(str(part) for part in key)
                warnings.append(
                    f"{appointment_type.value}: {counts[key]} sessions in {window} {label} "
                    f"exceeds the limit of {cap}"
                )
        return warnings

    @staticmethod
    def _counted(appointments: Iterable[Appointment], appointment_type: AppointmentType):
        return (
            appt for appt in appointments
            if appt.appointment_type == appointment_type and appt.is_active
        )


# =============================================================================
# CANCELLATION
# =============================================================================

@dataclass
class CancellationContext:
    scheduled_start: datetime
    current_time: datetime
    actor: CancellationActor


class CancellationPolicy(PolicyEngine):
    """
    Patient cancellations close to the appointment incur a late fee.

    Cancellation itself is always approved; metadata["late_fee"] says
    whether the billing collaborator must be told.
    """

    def __init__(self, late_window_hours: int = 24):
        self.late_window_hours = late_window_hours

    def evaluate(self, context: CancellationContext) -> PolicyDecision:
        hours_until = hours_between(context.current_time, context.scheduled_start)
        late = hours_until < self.late_window_hours

        if late and context.actor == CancellationActor.PATIENT:
            return PolicyDecision.approve(
                "Late cancellation by patient - fee applies",
                late_fee=True,
                hours_until=hours_until,
            )
        return PolicyDecision.approve(
            "Cancellation without fee", late_fee=False, hours_until=hours_until
        )


# =============================================================================
# BILLING
# =============================================================================

class BillingPolicy(PolicyEngine):
    """Minimum billable duration and unit rounding for completed sessions."""

    def __init__(self, min_minutes: int = 8, unit_minutes: int = 15):
        self.min_minutes = min_minutes
        self.unit_minutes = unit_minutes

    def billable_units(self, actual_minutes: int) -> int:
        return math.ceil(actual_minutes / self.unit_minutes)

    def evaluate(self, context: Dict) -> PolicyDecision:
        actual = context.get("actual_duration_minutes", 0)
        if actual < self.min_minutes:
            return PolicyDecision.deny(
                f"Session duration must be at least {self.min_minutes} minutes for billing",
                actual_duration_minutes=actual,
            )
        return PolicyDecision.approve(
            "Session is billable",
            units=self.billable_units(actual),
            actual_duration_minutes=actual,
        )


# =============================================================================
# LIFECYCLE
# =============================================================================

class TransitionPolicy(PolicyEngine):
    """Which status changes an appointment may go through."""

    def allowed(self, current: AppointmentStatus, target: AppointmentStatus) -> bool:
        return target in ALLOWED_TRANSITIONS.get(current, frozenset())

    def evaluate(self, context: Dict) -> PolicyDecision:
        current = context["current"]
        target = context["target"]
        if self.allowed(current, target):
            return PolicyDecision.approve(f"{current.value} -> {target.value}")
        return PolicyDecision.deny(
            f"Cannot move appointment from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
