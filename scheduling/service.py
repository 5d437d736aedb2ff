"""
Scheduling Service.

The public face of the scheduler: booking, the appointment lifecycle,
recurring series and schedule queries. Every mutation of a professional's
calendar happens while holding that professional's lock, so two bookings can
never claim the same slot. Calls to external collaborators are made outside
the lock: a booking first reserves its slot as pending verification, then
asks the insurance service, then either finalizes the booking or gives the
slot back.

All outcomes are returned as values (BookingResult, LifecycleResult and the
series reports). Collaborator errors are logged and converted, never raised.
"""

import asyncio
import logging
import uuid
from datetime import date, time
from typing import Any, Dict, List, Optional, Tuple

from config import settings as default_settings
from core.clock import Clock, SystemClock

from .collaborators import (
    BillingClient,
    InsuranceEligibilityClient,
    ReminderDispatcher,
    SessionLogger,
)
from .data.repository import AppointmentRepository, ScheduleRepository
from .domain.models import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    AppointmentType,
    BillingHandoffFailure,
    BookingResult,
    CancellationActor,
    ClaimHandoff,
    LifecycleResult,
    PriorAuthStatus,
    ProfessionalSchedule,
    RecurrencePattern,
    RecurrenceReport,
    RejectionReason,
    RescheduleEntry,
    SeriesCancelResult,
    SeriesMembership,
    SeriesScope,
    SeriesUpdateResult,
    TimeSlot,
)
from .domain.policies import (
    BillingPolicy,
    CancellationContext,
    CancellationPolicy,
    HolidayCalendar,
    SessionLimitPolicy,
    TransitionPolicy,
    session_description,
)
from .domain.services import (
    ConflictDetector,
    RecurrenceCalculator,
    SlotFinder,
    TimeSlotGrid,
    WorkingHours,
)
from .eligibility import EligibilityGate
from .recurrence import RecurrenceGenerator
from .reminders import ReminderScheduler
from .series import SeriesController
from .templates import DEFAULT_DURATIONS, get_template

logger = logging.getLogger(__name__)

REQUEST_FIELDS = frozenset(AppointmentRequest.model_fields)


class ProfessionalLocks:
    """One asyncio.Lock per professional; different professionals never wait on each other."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, professional_id: str) -> asyncio.Lock:
        lock = self._locks.get(professional_id)
        if lock is None:
            lock = self._locks[professional_id] = asyncio.Lock()
        return lock


class SchedulingService:
    def __init__(
        self,
        appointments: AppointmentRepository,
        schedules: ScheduleRepository,
        insurance: InsuranceEligibilityClient,
        billing: BillingClient,
        session_logger: SessionLogger,
        dispatcher: ReminderDispatcher,
        clock: Optional[Clock] = None,
        settings=None,
    ):
        settings = settings or default_settings
        self.settings = settings
        self.clock = clock or SystemClock()
        self._appointments = appointments
        self._schedules = schedules
        self._billing = billing
        self._session_logger = session_logger
        self._dispatcher = dispatcher

        self.grid = TimeSlotGrid(WorkingHours.from_settings(settings))
        self.detector = ConflictDetector()
        self.finder = SlotFinder()
        self.holidays = HolidayCalendar(settings.extra_holidays)
        self.calculator = RecurrenceCalculator(settings.recurrence_max_iterations, self.holidays)
        self.gate = EligibilityGate(
            insurance,
            appointments,
            SessionLimitPolicy(),
            timeout_seconds=settings.eligibility_timeout_seconds,
        )
        self.transitions = TransitionPolicy()
        self.cancellation = CancellationPolicy(settings.late_cancellation_hours)
        self.billing_rules = BillingPolicy(
            settings.min_billable_minutes, settings.billing_unit_minutes
        )
        self.reminders = ReminderScheduler(dispatcher, self.clock, on_sent=self._mark_reminder_sent)
        self.recurrence = RecurrenceGenerator(self)
        self.series = SeriesController(self)

        self.failed_handoffs: List[BillingHandoffFailure] = []
        self._locks = ProfessionalLocks()

    @property
    def appointments(self) -> AppointmentRepository:
        return self._appointments

    def lock_for(self, professional_id: str) -> asyncio.Lock:
        return self._locks.lock_for(professional_id)

    def shutdown(self) -> None:
        self.reminders.shutdown()

    # =========================================================================
    # CALENDAR HELPERS (call while holding the professional's lock)
    # =========================================================================

    def _load_schedule(self, professional_id: str, day: date) -> ProfessionalSchedule:
        schedule = self._schedules.get_for(professional_id, day)
        if schedule is None:
            schedule = self.grid.build_schedule(professional_id, day)
            self._schedules.save(schedule)
        return schedule

    def reserve_slots(self, appt: Appointment) -> None:
        schedule = self._load_schedule(appt.professional_id, appt.scheduled_date)
        self.grid.reserve(
            schedule,
            appt.scheduled_time,
            appt.duration_minutes,
            appt.id,
            appt.billing.estimated_reimbursement,
        )
        self._schedules.save(schedule)

    def release_slots(self, appt: Appointment) -> None:
        schedule = self._schedules.get_for(appt.professional_id, appt.scheduled_date)
        if schedule is not None and self.grid.release(schedule, appt.id):
            self._schedules.save(schedule)

    def conflicts_for(
        self,
        professional_id: str,
        day: date,
        start: time,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        return self.detector.find_conflicts(
            self._appointments.for_professional_on(professional_id, day),
            day,
            start,
            duration_minutes,
            exclude_id,
        )

    def nearest_open_slot(
        self,
        professional_id: str,
        day: date,
        preferred: time,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> Optional[time]:
        schedule = self._load_schedule(professional_id, day)
        day_appointments = self._appointments.for_professional_on(professional_id, day)
        windows = [
            window
            for window in self.grid.available_windows(schedule, duration_minutes, step_all=True)
            if not self.detector.has_conflict(
                day_appointments, day, window.start_time, duration_minutes, exclude_id
            )
        ]
        nearest = self.finder.find_nearest(windows, preferred)
        return nearest.start_time if nearest else None

    def check_transition(
        self, appt: Appointment, target: AppointmentStatus
    ) -> Optional[LifecycleResult]:
        decision = self.transitions.evaluate({"current": appt.status, "target": target})
        if decision.is_denied:
            logger.info(f"Rejected transition for appointment {appt.id}: {decision.reason}")
            return LifecycleResult.failed(
                RejectionReason.INVALID_TRANSITION, decision.reason, appointment=appt
            )
        return None

    def touch(self, appt: Appointment) -> None:
        appt.updated_at = self.clock.now()

    def _locate(self, appointment_id: str) -> Optional[Appointment]:
        appt = self._appointments.get_by_id(appointment_id)
        if appt is None or appt.pending_verification:
            return None
        return appt

    @staticmethod
    def _not_found(appointment_id: str) -> LifecycleResult:
        return LifecycleResult.failed(
            RejectionReason.NOT_FOUND, f"No appointment with id {appointment_id}"
        )

    async def _close_session(
        self, appt: Appointment, notes: str, goals_addressed: Optional[List[str]] = None
    ) -> None:
        if not appt.session_id:
            return
        try:
            await self._session_logger.end_session(appt.session_id, notes, goals_addressed or [])
        except Exception as e:
            logger.warning(f"Could not close session log {appt.session_id}: {e}")

    async def _mark_reminder_sent(self, appointment_id: str, channel: str) -> None:
        appt = self._appointments.get_by_id(appointment_id)
        if appt is None:
            return
        async with self.lock_for(appt.professional_id):
            appt = self._appointments.get_by_id(appointment_id)
            if appt is None or appt.reminders.reminder_sent:
                return
            appt.reminders.reminder_sent = True
            self.touch(appt)
            self._appointments.save(appt)

    async def _notify(self, recipient_id: str, subject: str, payload: Dict[str, Any]) -> None:
        try:
            await self._dispatcher.notify(recipient_id, subject, payload)
        except Exception as e:
            logger.warning(f"Notification '{subject}' for {recipient_id} failed: {e}")

    # =========================================================================
    # BOOKING
    # =========================================================================

    async def create_appointment(
        self,
        request: AppointmentRequest,
        series: Optional[SeriesMembership] = None,
        notify: bool = True,
    ) -> BookingResult:
        """
        Book a single appointment.

        Conflicts and session caps are checked and the slot is reserved under
        the professional's lock. Insurance is verified afterwards; a refusal
        releases the slot and removes the pending record, so the caller only
        ever sees a complete appointment or a rejection.
        """
        lock = self.lock_for(request.professional_id)

        async with lock:
            conflicts = self.conflicts_for(
                request.professional_id,
                request.scheduled_date,
                request.scheduled_time,
                request.duration_minutes,
            )
            if conflicts:
                logger.info(
                    f"Booking for patient {request.patient_id} on {request.scheduled_date} "
                    f"{request.scheduled_time} conflicts with {conflicts[0].id}"
                )
                return BookingResult.rejected(
                    RejectionReason.SCHEDULE_CONFLICT,
                    f"Overlaps appointment {conflicts[0].id}",
                )

            limit = self.gate.check_regulatory_limit(
                request.patient_id, request.appointment_type, request.scheduled_date
            )
            if limit.is_denied:
                return BookingResult.rejected(
                    RejectionReason.REGULATORY_LIMIT_EXCEEDED,
                    f"{limit.metadata.get('count')} of {limit.metadata.get('cap')} "
                    f"{request.appointment_type.value} sessions already booked this "
                    f"{limit.metadata.get('window')}",
                )

            now = self.clock.now()
            appt = Appointment.model_validate({
                **request.model_dump(),
                "id": f"APT-{uuid.uuid4().hex[:12].upper()}",
                "status": AppointmentStatus.SCHEDULED,
                "recurrence": series.model_dump() if series else None,
                "pending_verification": True,
                "created_at": now,
                "updated_at": now,
            })
            self._appointments.save(appt)
            self.reserve_slots(appt)

        eligibility = await self.gate.check_eligibility(
            request.patient_id, request.billing.cpt_code, request.scheduled_date
        )

        async with lock:
            if not eligibility.authorized:
                self.release_slots(appt)
                self._appointments.delete(appt.id)
                logger.warning(
                    f"Booking for patient {request.patient_id} refused: {eligibility.reason}"
                )
                return BookingResult.rejected(
                    RejectionReason.INSURANCE_NOT_AUTHORIZED, eligibility.reason or ""
                )

            appt.billing.insurance_verified = True
            appt.billing.prior_auth_required = eligibility.prior_auth_required
            appt.billing.prior_auth_status = (
                PriorAuthStatus.PENDING if eligibility.prior_auth_required else PriorAuthStatus.APPROVED
            )
            appt.pending_verification = False
            self.touch(appt)
            self._appointments.save(appt)

        logger.info(
            f"Appointment {appt.id} booked: {appt.appointment_type.value} for patient "
            f"{appt.patient_id} with {appt.professional_id} on {appt.scheduled_date} "
            f"at {appt.scheduled_time.strftime('%H:%M')}"
        )
        self.reminders.schedule(appt)
        if notify:
            await self._notify(appt.patient_id, "Appointment confirmation", {
                "appointment_id": appt.id,
                "date": appt.scheduled_date.isoformat(),
                "time": appt.scheduled_time.strftime("%H:%M"),
                "duration_minutes": appt.duration_minutes,
            })
        return BookingResult.booked(appt)

    async def create_from_template(
        self,
        template_id: str,
        professional_id: str,
        patient_id: str,
        scheduled_date: date,
        scheduled_time: time,
        **overrides,
    ) -> BookingResult:
        template = get_template(template_id)
        if template is None:
            raise ValueError(f"Unknown appointment template: {template_id}")
        request = template.build_request(
            professional_id, patient_id, scheduled_date, scheduled_time, **overrides
        )
        return await self.create_appointment(request)

    async def create_recurring_appointments(
        self, request: AppointmentRequest, pattern: RecurrencePattern
    ) -> RecurrenceReport:
        return await self.recurrence.expand(request, pattern)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._locate(appointment_id)

    async def confirm_appointment(self, appointment_id: str) -> LifecycleResult:
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        async with self.lock_for(appt.professional_id):
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.CONFIRMED)
            if failure:
                return failure
            appt.status = AppointmentStatus.CONFIRMED
            self.touch(appt)
            self._appointments.save(appt)

        logger.info(f"Appointment {appt.id} confirmed")
        return LifecycleResult.ok(appt)

    async def start_appointment(self, appointment_id: str) -> LifecycleResult:
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        lock = self.lock_for(appt.professional_id)
        async with lock:
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.IN_PROGRESS)
            if failure:
                return failure
            appt.status = AppointmentStatus.IN_PROGRESS
            self.touch(appt)
            self._appointments.save(appt)

        self.reminders.cancel(appt.id)

        try:
            session_id = await self._session_logger.start_session(
                appt.patient_id,
                session_description(appt.appointment_type),
                appt.clinical.treatment_goals,
            )
        except Exception as e:
            logger.warning(f"Could not open session log for appointment {appt.id}: {e}")
            session_id = None

        if session_id:
            async with lock:
                appt = self._appointments.get_by_id(appointment_id)
                appt.session_id = session_id
                self.touch(appt)
                self._appointments.save(appt)

        logger.info(f"Appointment {appt.id} started (session {session_id})")
        return LifecycleResult.ok(appt)

    async def complete_appointment(
        self,
        appointment_id: str,
        actual_duration_minutes: int,
        progress_notes: str = "",
        goals_addressed: Optional[List[str]] = None,
        homework_assigned: Optional[str] = None,
        billing_notes: Optional[str] = None,
    ) -> LifecycleResult:
        """
        Close an in-progress session and hand it to billing.

        The appointment stays completed even if the claim cannot be created;
        the failure is returned and kept for retry_failed_handoffs().
        """
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        lock = self.lock_for(appt.professional_id)
        async with lock:
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.COMPLETED)
            if failure:
                return failure

            decision = self.billing_rules.evaluate(
                {"actual_duration_minutes": actual_duration_minutes}
            )
            if decision.is_denied:
                return LifecycleResult.failed(
                    RejectionReason.BELOW_MINIMUM_DURATION, decision.reason, appointment=appt
                )
            units = decision.metadata["units"]

            appt.status = AppointmentStatus.COMPLETED
            appt.notes.post_session = progress_notes
            if homework_assigned:
                appt.clinical.homework_assigned = homework_assigned
            if billing_notes:
                appt.notes.billing = billing_notes
            self.touch(appt)
            self._appointments.save(appt)

        self.reminders.cancel(appt.id)

        await self._close_session(appt, progress_notes, goals_addressed or [])

        handoff = ClaimHandoff(
            appointment_id=appt.id,
            patient_id=appt.patient_id,
            cpt_code=appt.billing.cpt_code,
            units=units,
            amount=appt.billing.estimated_reimbursement,
            notes=progress_notes,
            modifiers=list(appt.billing.modifiers),
            diagnosis_codes=list(appt.billing.diagnosis_codes),
            authorization_number=appt.billing.authorization_number,
        )
        claim_id, billing_failure = await self._hand_off_claim(handoff)
        if claim_id:
            appt = await self._record_claim(appt, claim_id)

        next_appointment = None
        if appt.recurrence is not None:
            next_appointment = await self._book_next_in_series(appt)

        logger.info(
            f"Appointment {appt.id} completed: {actual_duration_minutes} min, {units} units"
        )
        return LifecycleResult.ok(
            appt,
            claim_id=claim_id,
            billing_failure=billing_failure,
            next_appointment=next_appointment,
        )

    async def cancel_appointment(
        self,
        appointment_id: str,
        reason: str,
        actor: CancellationActor = CancellationActor.SYSTEM,
    ) -> LifecycleResult:
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        async with self.lock_for(appt.professional_id):
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.CANCELLED)
            if failure:
                return failure
            was_in_progress = appt.status == AppointmentStatus.IN_PROGRESS

            decision = self.cancellation.evaluate(CancellationContext(
                scheduled_start=appt.start_at,
                current_time=self.clock.now(),
                actor=actor,
            ))
            late_fee = decision.metadata["late_fee"]

            self.release_slots(appt)
            appt.status = AppointmentStatus.CANCELLED
            appt.cancellation_reason = reason
            appt.cancelled_by = actor
            appt.late_cancellation_fee = late_fee
            appt.notes.billing = f"Cancelled by {actor.value}: {reason}"
            self.touch(appt)
            self._appointments.save(appt)

        self.reminders.cancel(appt.id)
        logger.info(f"Appointment {appt.id} cancelled by {actor.value}: {reason}")

        if was_in_progress:
            await self._close_session(appt, f"Session cancelled: {reason}")

        billing_failure = None
        if late_fee:
            billing_failure = await self._apply_late_fee(appt.id)

        return LifecycleResult.ok(
            appt, late_cancellation_fee=late_fee, billing_failure=billing_failure
        )

    async def reschedule_appointment(
        self, appointment_id: str, new_date: date, new_time: time
    ) -> LifecycleResult:
        """
        Move an appointment to a new slot, keeping its identity and metadata.

        The old slot is only released once the new one is known to be free.
        """
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        async with self.lock_for(appt.professional_id):
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.RESCHEDULED)
            if failure:
                return failure

            conflicts = self.conflicts_for(
                appt.professional_id, new_date, new_time, appt.duration_minutes, exclude_id=appt.id
            )
            if conflicts:
                return LifecycleResult.failed(
                    RejectionReason.SCHEDULE_CONFLICT,
                    f"Overlaps appointment {conflicts[0].id}",
                    appointment=appt,
                )

            self.release_slots(appt)
            appt.reschedule_history.append(RescheduleEntry(
                previous_date=appt.scheduled_date,
                previous_time=appt.scheduled_time,
                rescheduled_at=self.clock.now(),
            ))
            appt.scheduled_date = new_date
            appt.scheduled_time = new_time
            appt.status = AppointmentStatus.RESCHEDULED
            appt.reminders.reminder_sent = False
            self.touch(appt)
            self.reserve_slots(appt)
            self._appointments.save(appt)

        self.reminders.schedule(appt)
        logger.info(f"Appointment {appt.id} rescheduled to {new_date} {new_time.strftime('%H:%M')}")
        await self._notify(appt.patient_id, "Appointment rescheduled", {
            "appointment_id": appt.id,
            "date": new_date.isoformat(),
            "time": new_time.strftime("%H:%M"),
        })
        return LifecycleResult.ok(appt)

    async def mark_no_show(self, appointment_id: str) -> LifecycleResult:
        appt = self._locate(appointment_id)
        if appt is None:
            return self._not_found(appointment_id)

        async with self.lock_for(appt.professional_id):
            appt = self._appointments.get_by_id(appointment_id)
            failure = self.check_transition(appt, AppointmentStatus.NO_SHOW)
            if failure:
                return failure
            was_in_progress = appt.status == AppointmentStatus.IN_PROGRESS
            appt.status = AppointmentStatus.NO_SHOW
            self.touch(appt)
            self._appointments.save(appt)

        self.reminders.cancel(appt.id)
        logger.info(f"Appointment {appt.id} marked as no-show")
        if was_in_progress:
            await self._close_session(appt, "Patient left before the session ended")
        return LifecycleResult.ok(appt)

    # =========================================================================
    # BILLING HANDOFF
    # =========================================================================

    async def _hand_off_claim(
        self, handoff: ClaimHandoff
    ) -> Tuple[Optional[str], Optional[BillingHandoffFailure]]:
        try:
            claim_id = await self._billing.create_claim(handoff)
        except Exception as e:
            logger.error(
                f"Claim creation failed for appointment {handoff.appointment_id}: {e}",
                exc_info=True,
            )
            failure = BillingHandoffFailure(
                appointment_id=handoff.appointment_id,
                operation="create_claim",
                error=str(e),
                handoff=handoff,
                occurred_at=self.clock.now(),
            )
            self.failed_handoffs.append(failure)
            return None, failure
        return claim_id, None

    async def _apply_late_fee(self, appointment_id: str) -> Optional[BillingHandoffFailure]:
        try:
            await self._billing.apply_late_cancellation_fee(appointment_id)
        except Exception as e:
            logger.error(
                f"Late cancellation fee failed for appointment {appointment_id}: {e}",
                exc_info=True,
            )
            failure = BillingHandoffFailure(
                appointment_id=appointment_id,
                operation="late_cancellation_fee",
                error=str(e),
                occurred_at=self.clock.now(),
            )
            self.failed_handoffs.append(failure)
            return failure
        return None

    async def _record_claim(self, appt: Appointment, claim_id: str) -> Appointment:
        async with self.lock_for(appt.professional_id):
            current = self._appointments.get_by_id(appt.id)
            current.claim_id = claim_id
            self.touch(current)
            self._appointments.save(current)
        return current

    async def retry_failed_handoffs(self) -> List[BillingHandoffFailure]:
        """Retry every recorded billing failure. Returns the ones still failing."""
        pending, self.failed_handoffs = self.failed_handoffs, []
        for failure in pending:
            if failure.operation == "create_claim" and failure.handoff is not None:
                claim_id, _ = await self._hand_off_claim(failure.handoff)
                if claim_id:
                    appt = self._appointments.get_by_id(failure.appointment_id)
                    if appt is not None:
                        await self._record_claim(appt, claim_id)
            elif failure.operation == "late_cancellation_fee":
                await self._apply_late_fee(failure.appointment_id)
        return list(self.failed_handoffs)

    # =========================================================================
    # RECURRING SERIES
    # =========================================================================

    async def _book_next_in_series(self, appt: Appointment) -> Optional[Appointment]:
        """Book the series instance following a completed one, unless it already exists."""
        membership = appt.recurrence
        pattern = membership.pattern
        next_day = self.calculator.next_after(membership.start_date, pattern, appt.scheduled_date)
        if next_day is None:
            return None

        siblings = [s for s in self._appointments.in_series(membership.series_id) if s.is_active]
        if any(s.scheduled_date == next_day for s in siblings):
            return None
        if pattern.occurrence_count is not None and len(siblings) >= pattern.occurrence_count:
            return None

        data = appt.model_dump(include=REQUEST_FIELDS)
        data["scheduled_date"] = next_day
        data["notes"] = {"pre_session": f"Recurring appointment from series {membership.series_id}"}
        data["clinical"]["homework_assigned"] = None
        request = AppointmentRequest.model_validate(data)

        result = await self.create_appointment(request, series=membership, notify=False)
        if not result.success:
            logger.warning(
                f"Next instance of series {membership.series_id} on {next_day} not booked: "
                f"{result.rejection.reason.value}"
            )
            return None
        return result.appointment

    async def update_recurring_series(
        self,
        series_id: str,
        updates: Dict[str, Any],
        scope: SeriesScope = SeriesScope.ALL,
        target_id: Optional[str] = None,
    ) -> SeriesUpdateResult:
        return await self.series.update(series_id, updates, scope, target_id)

    async def cancel_recurring_series(
        self,
        series_id: str,
        scope: SeriesScope,
        reason: str,
        actor: CancellationActor = CancellationActor.SYSTEM,
    ) -> SeriesCancelResult:
        return await self.series.cancel(series_id, scope, reason, actor)

    async def send_series_summary(self, report: RecurrenceReport, request: AppointmentRequest) -> None:
        created = report.created
        await self._notify(request.patient_id, "Recurring appointments scheduled", {
            "series_id": report.series_id,
            "total_appointments": len(created),
            "first_date": created[0].scheduled_date.isoformat(),
            "last_date": created[-1].scheduled_date.isoformat(),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
            "estimated_total_cost": round(
                sum(a.billing.estimated_reimbursement for a in created), 2
            ),
            "total_copay": round(sum(a.billing.copay_amount for a in created), 2),
        })

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_professional_schedule(
        self, professional_id: str, day: date
    ) -> ProfessionalSchedule:
        async with self.lock_for(professional_id):
            return self._load_schedule(professional_id, day)

    async def get_available_time_slots(
        self,
        professional_id: str,
        day: date,
        appointment_type: Optional[AppointmentType] = None,
        duration_minutes: Optional[int] = None,
    ) -> List[TimeSlot]:
        if duration_minutes is None:
            duration_minutes = DEFAULT_DURATIONS.get(appointment_type, 30)
        async with self.lock_for(professional_id):
            schedule = self._load_schedule(professional_id, day)
            day_appointments = self._appointments.for_professional_on(professional_id, day)
        # Off-grid bookings only partly cover some slots, so the grid alone is not enough
        return [
            window
            for window in self.grid.available_windows(schedule, duration_minutes)
            if not self.detector.has_conflict(
                day_appointments, day, window.start_time, duration_minutes
            )
        ]

    def generate_billing_report(
        self, professional_id: str, start: date, end: date
    ) -> Dict[str, Any]:
        """Billing summary for a professional over an inclusive date range."""
        appointments = [
            a for a in self._appointments.for_professional_between(professional_id, start, end)
            if not a.pending_verification
        ]
        completed = [a for a in appointments if a.status == AppointmentStatus.COMPLETED]

        by_cpt: Dict[str, Dict[str, Any]] = {}
        for appt in completed:
            entry = by_cpt.setdefault(appt.billing.cpt_code, {"count": 0, "total_billed": 0.0})
            entry["count"] += 1
            entry["total_billed"] = round(
                entry["total_billed"] + appt.billing.estimated_reimbursement, 2
            )
        for entry in by_cpt.values():
            entry["average_reimbursement"] = round(entry["total_billed"] / entry["count"], 2)

        return {
            "professional_id": professional_id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "summary": {
                "total_appointments": len(appointments),
                "completed": len(completed),
                "cancelled": sum(1 for a in appointments if a.status == AppointmentStatus.CANCELLED),
                "no_shows": sum(1 for a in appointments if a.status == AppointmentStatus.NO_SHOW),
                "late_cancellations": sum(1 for a in appointments if a.late_cancellation_fee),
                "billable_hours": round(sum(a.duration_minutes for a in completed) / 60, 2),
                "total_billed": round(sum(a.billing.estimated_reimbursement for a in completed), 2),
                "claims_pending_retry": sum(
                    1 for f in self.failed_handoffs
                    if f.operation == "create_claim"
                    and any(a.id == f.appointment_id for a in completed)
                ),
            },
            "by_cpt_code": by_cpt,
        }
