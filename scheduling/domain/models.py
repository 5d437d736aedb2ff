"""
Scheduling Domain Models.

Entities are pydantic models so the same objects travel through the domain
layer, the Cosmos DB documents (``model_dump(mode="json")``) and the HTTP API.
Operation outcomes are plain dataclasses: failures are returned as values,
never raised across the service boundary.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# ENUMERATIONS
# =============================================================================

class AppointmentType(str, Enum):
    EVALUATION = "evaluation"
    INDIVIDUAL_THERAPY = "individual_therapy"
    GROUP_THERAPY = "group_therapy"
    TELETHERAPY = "teletherapy"
    CONSULTATION = "consultation"
    ASSESSMENT = "assessment"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})


class LocationType(str, Enum):
    IN_PERSON = "in_person"
    TELEHEALTH = "telehealth"
    HOME_VISIT = "home_visit"
    SCHOOL_VISIT = "school_visit"


class PriorAuthStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ConflictPolicy(str, Enum):
    BLOCK = "block"
    ALLOW = "allow"
    AUTO_ADJUST = "auto_adjust"


class SeriesScope(str, Enum):
    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


class CancellationActor(str, Enum):
    PATIENT = "patient"
    PROFESSIONAL = "professional"
    SYSTEM = "system"


class RejectionReason(str, Enum):
    INSURANCE_NOT_AUTHORIZED = "insurance not authorized"
    REGULATORY_LIMIT_EXCEEDED = "regulatory limit exceeded"
    SCHEDULE_CONFLICT = "schedule conflict"
    BELOW_MINIMUM_DURATION = "below minimum billable duration"
    NOT_FOUND = "appointment not found"
    INVALID_TRANSITION = "invalid transition"


# =============================================================================
# APPOINTMENT
# =============================================================================

class LocationDetails(BaseModel):
    address: Optional[str] = None
    room_number: Optional[str] = None
    telehealth_link: Optional[str] = None
    special_instructions: Optional[str] = None


class BillingInfo(BaseModel):
    cpt_code: str
    modifiers: List[str] = Field(default_factory=list)
    authorization_number: Optional[str] = None
    diagnosis_codes: List[str] = Field(default_factory=list)
    estimated_reimbursement: float = 0.0
    copay_amount: float = 0.0
    insurance_verified: bool = False
    prior_auth_required: bool = False
    prior_auth_status: Optional[PriorAuthStatus] = None


class ClinicalInfo(BaseModel):
    treatment_goals: List[str] = Field(default_factory=list)
    session_plan: str = ""
    materials_needed: List[str] = Field(default_factory=list)
    homework_assigned: Optional[str] = None
    parent_participation_required: bool = False


class ReminderSettings(BaseModel):
    patient_reminder: bool = True
    patient_reminder_hours: int = 24
    professional_reminder: bool = True
    professional_reminder_minutes: int = 15
    parent_notification: bool = False
    reminder_sent: bool = False


class AppointmentNotes(BaseModel):
    pre_session: str = ""
    post_session: str = ""
    billing: str = ""
    clinical_observations: str = ""


class RecurrencePattern(BaseModel):
    """How a recurring series repeats. Weekdays use Monday=0 .. Sunday=6."""
    pattern: RecurrenceFrequency
    frequency: int = Field(default=1, ge=1)
    days_of_week: List[int] = Field(default_factory=list)
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = Field(default=None, ge=1)
    exceptions: List[date] = Field(default_factory=list)
    skip_holidays: bool = True
    conflict_policy: ConflictPolicy = ConflictPolicy.BLOCK

    @field_validator("days_of_week")
    @classmethod
    def _check_weekdays(cls, value: List[int]) -> List[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"days_of_week values must be 0 (Monday) to 6 (Sunday), got {day}")
        return sorted(set(value))


class SeriesMembership(BaseModel):
    series_id: str
    pattern: RecurrencePattern
    start_date: date


class RescheduleEntry(BaseModel):
    previous_date: date
    previous_time: time
    rescheduled_at: datetime


class AppointmentRequest(BaseModel):
    """Everything a caller supplies to book an appointment."""
    professional_id: str
    patient_id: str
    appointment_type: AppointmentType
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int = Field(gt=0)
    location_type: LocationType = LocationType.IN_PERSON
    location_details: LocationDetails = Field(default_factory=LocationDetails)
    billing: BillingInfo
    clinical: ClinicalInfo = Field(default_factory=ClinicalInfo)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
    notes: AppointmentNotes = Field(default_factory=AppointmentNotes)
    created_by: str = "system"

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.scheduled_date, self.scheduled_time)

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration_minutes)


class Appointment(AppointmentRequest):
    id: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    recurrence: Optional[SeriesMembership] = None
    session_id: Optional[str] = None
    claim_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancellationActor] = None
    late_cancellation_fee: bool = False
    reschedule_history: List[RescheduleEntry] = Field(default_factory=list)
    pending_verification: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def series_id(self) -> Optional[str]:
        return self.recurrence.series_id if self.recurrence else None

    @property
    def is_active(self) -> bool:
        """Active appointments occupy their interval on the calendar."""
        return self.status != AppointmentStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# =============================================================================
# PROFESSIONAL SCHEDULE
# =============================================================================

class TimeSlot(BaseModel):
    start_time: time
    end_time: time
    available: bool = True
    appointment_id: Optional[str] = None
    break_time: bool = False


class Reservation(BaseModel):
    """What a reservation added to a day's totals, so release can undo it."""
    appointment_id: str
    minutes: int
    revenue: float = 0.0


class ProfessionalSchedule(BaseModel):
    professional_id: str
    schedule_date: date
    working_start: time
    working_end: time
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None
    time_slots: List[TimeSlot] = Field(default_factory=list)
    total_appointments: int = 0
    total_billable_hours: float = 0.0
    estimated_daily_revenue: float = 0.0
    reservations: Dict[str, Reservation] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return schedule_key(self.professional_id, self.schedule_date)


def schedule_key(professional_id: str, schedule_date: date) -> str:
    return f"{professional_id}:{schedule_date.isoformat()}"


# =============================================================================
# OPERATION RESULTS
# =============================================================================

@dataclass
class Rejection:
    """A booking or transition that was refused, with nothing changed."""
    reason: RejectionReason
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason.value, "detail": self.detail}


@dataclass
class BookingResult:
    success: bool
    appointment: Optional[Appointment] = None
    rejection: Optional[Rejection] = None

    @classmethod
    def booked(cls, appointment: Appointment) -> "BookingResult":
        return cls(success=True, appointment=appointment)

    @classmethod
    def rejected(cls, reason: RejectionReason, detail: str = "") -> "BookingResult":
        return cls(success=False, rejection=Rejection(reason, detail))


@dataclass
class EligibilityResult:
    authorized: bool
    reason: Optional[str] = None
    prior_auth_required: bool = False


@dataclass
class ClaimHandoff:
    """Everything the billing collaborator needs to open a claim."""
    appointment_id: str
    patient_id: str
    cpt_code: str
    units: int
    amount: float
    notes: str = ""
    modifiers: List[str] = field(default_factory=list)
    diagnosis_codes: List[str] = field(default_factory=list)
    authorization_number: Optional[str] = None


@dataclass
class BillingHandoffFailure:
    """A billing call that failed after the appointment already changed state."""
    appointment_id: str
    operation: str
    error: str
    handoff: Optional[ClaimHandoff] = None
    occurred_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "operation": self.operation,
            "error": self.error,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


@dataclass
class LifecycleResult:
    success: bool
    appointment: Optional[Appointment] = None
    failure: Optional[Rejection] = None
    claim_id: Optional[str] = None
    late_cancellation_fee: bool = False
    billing_failure: Optional[BillingHandoffFailure] = None
    next_appointment: Optional[Appointment] = None

    @classmethod
    def ok(cls, appointment: Appointment, **kwargs) -> "LifecycleResult":
        return cls(success=True, appointment=appointment, **kwargs)

    @classmethod
    def failed(
        cls,
        reason: RejectionReason,
        detail: str = "",
        appointment: Optional[Appointment] = None,
    ) -> "LifecycleResult":
        return cls(success=False, appointment=appointment, failure=Rejection(reason, detail))


@dataclass
class SkippedInstance:
    scheduled_date: date
    reason: str


@dataclass
class FailedInstance:
    scheduled_date: date
    error: str


@dataclass
class RecurrenceReport:
    series_id: str
    created: List[Appointment] = field(default_factory=list)
    skipped: List[SkippedInstance] = field(default_factory=list)
    failed: List[FailedInstance] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.skipped or self.failed)


@dataclass
class SeriesFailure:
    appointment_id: str
    reason: str


@dataclass
class SeriesUpdateResult:
    updated: List[str] = field(default_factory=list)
    failed: List[SeriesFailure] = field(default_factory=list)


@dataclass
class SeriesCancelResult:
    cancelled: int = 0
    fees_applied: int = 0
    failed: List[SeriesFailure] = field(default_factory=list)
