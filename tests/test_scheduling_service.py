"""Tests for booking and the appointment lifecycle."""

import asyncio
from datetime import date, datetime, time

import pytest

from scheduling.domain.models import (
    AppointmentStatus,
    AppointmentType,
    BillingInfo,
    CancellationActor,
    PriorAuthStatus,
    RecurrenceFrequency,
    RecurrencePattern,
    RejectionReason,
)
from tests.conftest import NEXT_MONDAY


def active_intervals(appointments, professional_id="slp-001"):
    found = [
        a for a in appointments.find().data
        if a.professional_id == professional_id and a.is_active
    ]
    return sorted(((a.start_at, a.end_at, a.id) for a in found))


def assert_no_overlaps(appointments):
    intervals = active_intervals(appointments)
    for (_, end, first), (start, _, second) in zip(intervals, intervals[1:]):
        assert end <= start, f"{first} overlaps {second}"


async def book(service, make_request, **overrides):
    result = await service.create_appointment(make_request(**overrides))
    assert result.success, result.rejection
    return result.appointment


async def book_in_progress(service, make_request, **overrides):
    appt = await book(service, make_request, **overrides)
    assert (await service.confirm_appointment(appt.id)).success
    assert (await service.start_appointment(appt.id)).success
    return appt


class TestCreateAppointment:
    """Tests for single appointment booking."""

    @pytest.mark.asyncio
    async def test_books_and_reserves_slots(self, service, make_request, schedules, dispatcher):
        """A successful booking is stored, verified and holds its slots."""
        result = await service.create_appointment(make_request())

        assert result.success
        appt = result.appointment
        assert appt.id.startswith("APT-")
        assert appt.status == AppointmentStatus.SCHEDULED
        assert appt.billing.insurance_verified is True
        assert appt.billing.prior_auth_status == PriorAuthStatus.APPROVED
        assert appt.pending_verification is False
        assert service.get_appointment(appt.id) == appt

        schedule = schedules.get_for("slp-001", NEXT_MONDAY)
        taken = [s.start_time for s in schedule.time_slots if s.appointment_id == appt.id]
        assert taken == [time(10, 0), time(10, 15)]
        assert schedule.total_appointments == 1
        assert schedule.estimated_daily_revenue == 120.0

        assert dispatcher.notifications[0][:2] == ("pat-001", "Appointment confirmation")

    @pytest.mark.asyncio
    async def test_prior_auth_is_left_pending(self, service, make_request, insurance):
        insurance.prior_auth_required = True
        result = await service.create_appointment(make_request())

        assert result.success
        assert result.appointment.billing.prior_auth_required is True
        assert result.appointment.billing.prior_auth_status == PriorAuthStatus.PENDING

    @pytest.mark.asyncio
    async def test_insurance_refusal_leaves_nothing_behind(
        self, service, make_request, insurance, appointments, schedules
    ):
        """A refused booking releases its reserved slots and removes the record."""
        insurance.denied.add("pat-001")
        result = await service.create_appointment(make_request())

        assert not result.success
        assert result.rejection.reason == RejectionReason.INSURANCE_NOT_AUTHORIZED
        assert result.rejection.detail == "Coverage terminated"
        assert appointments.find().total_count == 0

        schedule = schedules.get_for("slp-001", NEXT_MONDAY)
        assert schedule.total_appointments == 0
        assert all(s.appointment_id is None for s in schedule.time_slots)

    @pytest.mark.asyncio
    async def test_insurance_timeout_is_a_refusal(self, service, make_request, insurance, appointments):
        insurance.delay = 1.0
        result = await service.create_appointment(make_request())

        assert not result.success
        assert result.rejection.reason == RejectionReason.INSURANCE_NOT_AUTHORIZED
        assert "timed out" in result.rejection.detail
        assert appointments.find().total_count == 0

    @pytest.mark.asyncio
    async def test_insurance_error_is_a_refusal(self, service, make_request, insurance):
        insurance.error = ConnectionError("payer offline")
        result = await service.create_appointment(make_request())

        assert not result.success
        assert result.rejection.reason == RejectionReason.INSURANCE_NOT_AUTHORIZED
        assert "payer offline" in result.rejection.detail

    @pytest.mark.asyncio
    async def test_overlapping_booking_is_refused(self, service, make_request, insurance):
        first = await book(service, make_request)
        insurance.calls.clear()

        result = await service.create_appointment(
            make_request(patient_id="pat-002", scheduled_time=time(10, 15))
        )

        assert not result.success
        assert result.rejection.reason == RejectionReason.SCHEDULE_CONFLICT
        assert first.id in result.rejection.detail
        # Conflicts are refused before insurance is asked
        assert insurance.calls == []

    @pytest.mark.asyncio
    async def test_back_to_back_booking_is_allowed(self, service, make_request):
        await book(service, make_request)
        second = await service.create_appointment(
            make_request(patient_id="pat-002", scheduled_time=time(10, 30))
        )
        assert second.success

    @pytest.mark.asyncio
    async def test_other_professionals_do_not_conflict(self, service, make_request):
        await book(service, make_request)
        other = await service.create_appointment(
            make_request(professional_id="slp-002", patient_id="pat-002")
        )
        assert other.success

    @pytest.mark.asyncio
    async def test_weekly_session_cap(self, service, make_request):
        """A fourth individual session in the same ISO week is refused."""
        for offset in range(3):
            await book(service, make_request, scheduled_date=date(2026, 3, 9 + offset))

        result = await service.create_appointment(make_request(scheduled_date=date(2026, 3, 12)))
        assert not result.success
        assert result.rejection.reason == RejectionReason.REGULATORY_LIMIT_EXCEEDED
        assert "3 of 3" in result.rejection.detail

        next_week = await service.create_appointment(make_request(scheduled_date=date(2026, 3, 16)))
        assert next_week.success

    @pytest.mark.asyncio
    async def test_concurrent_bookings_for_one_slot(self, service, make_request, insurance, appointments):
        """Only one of several simultaneous bookings for the same slot wins."""
        insurance.delay = 0.01
        requests = [make_request(patient_id=f"pat-{i:03d}") for i in range(5)]

        results = await asyncio.gather(*(service.create_appointment(r) for r in requests))

        assert sum(1 for r in results if r.success) == 1
        losers = [r for r in results if not r.success]
        assert all(r.rejection.reason == RejectionReason.SCHEDULE_CONFLICT for r in losers)
        assert appointments.find().total_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_bookings_never_overlap(self, service, make_request, insurance, appointments):
        """Interleaved bookings at staggered times keep the calendar overlap free."""
        insurance.delay = 0.005
        starts = [time(9, 0), time(9, 15), time(9, 30), time(9, 45), time(10, 0), time(10, 45)]
        requests = [
            make_request(patient_id=f"pat-{i:03d}", scheduled_time=start)
            for i, start in enumerate(starts)
        ]

        results = await asyncio.gather(*(service.create_appointment(r) for r in requests))

        assert any(r.success for r in results)
        assert_no_overlaps(appointments)

    @pytest.mark.asyncio
    async def test_pending_booking_is_hidden(self, service, make_request, insurance):
        """A booking still waiting on insurance is not visible to lookups."""
        insurance.delay = 0.05
        task = asyncio.ensure_future(service.create_appointment(make_request()))
        await asyncio.sleep(0.01)

        pending = service.appointments.find().data
        assert len(pending) == 1
        assert pending[0].pending_verification is True
        assert service.get_appointment(pending[0].id) is None

        result = await task
        assert service.get_appointment(result.appointment.id) is not None

    @pytest.mark.asyncio
    async def test_create_from_template(self, service):
        result = await service.create_from_template(
            "therapy_individual", "slp-001", "pat-001", NEXT_MONDAY, time(9, 0)
        )

        assert result.success
        appt = result.appointment
        assert appt.appointment_type == AppointmentType.INDIVIDUAL_THERAPY
        assert appt.duration_minutes == 30
        assert appt.billing.cpt_code == "92507"
        assert "Increase vocabulary use" in appt.clinical.treatment_goals

    @pytest.mark.asyncio
    async def test_unknown_template(self, service):
        with pytest.raises(ValueError):
            await service.create_from_template("nope", "slp-001", "pat-001", NEXT_MONDAY, time(9, 0))


class TestLifecycle:
    """Tests for confirm, start, complete, no-show and the billing handoff."""

    @pytest.mark.asyncio
    async def test_full_session_creates_claim(self, service, make_request, billing, session_logger):
        appt = await book_in_progress(service, make_request, clinical={"treatment_goals": ["Requesting"]})
        current = service.get_appointment(appt.id)
        assert current.status == AppointmentStatus.IN_PROGRESS
        assert current.session_id == "SES-1"
        assert session_logger.started == [("pat-001", "Individual AAC Therapy", ["Requesting"])]

        result = await service.complete_appointment(
            appt.id, 22, progress_notes="Good progress", goals_addressed=["Requesting"]
        )

        assert result.success
        assert result.appointment.status == AppointmentStatus.COMPLETED
        assert result.claim_id == "CLM-1"
        assert result.appointment.claim_id == "CLM-1"
        assert result.appointment.notes.post_session == "Good progress"
        claim = billing.claims[0]
        assert claim.units == 2
        assert claim.amount == 120.0
        assert claim.cpt_code == "92507"
        assert session_logger.ended == [("SES-1", "Good progress", ["Requesting"])]

    @pytest.mark.asyncio
    async def test_complete_requires_in_progress(self, service, make_request, billing):
        appt = await book(service, make_request)
        result = await service.complete_appointment(appt.id, 30)

        assert not result.success
        assert result.failure.reason == RejectionReason.INVALID_TRANSITION
        assert service.get_appointment(appt.id).status == AppointmentStatus.SCHEDULED
        assert billing.claims == []

    @pytest.mark.asyncio
    async def test_short_session_is_not_completed(self, service, make_request, billing):
        appt = await book_in_progress(service, make_request)
        result = await service.complete_appointment(appt.id, 5)

        assert not result.success
        assert result.failure.reason == RejectionReason.BELOW_MINIMUM_DURATION
        assert service.get_appointment(appt.id).status == AppointmentStatus.IN_PROGRESS
        assert billing.claims == []

    @pytest.mark.asyncio
    async def test_start_requires_confirmation(self, service, make_request, session_logger):
        appt = await book(service, make_request)
        result = await service.start_appointment(appt.id)

        assert not result.success
        assert result.failure.reason == RejectionReason.INVALID_TRANSITION
        assert session_logger.started == []

    @pytest.mark.asyncio
    async def test_billing_failure_keeps_completion(self, service, make_request, billing):
        """A failed claim does not undo the completed status and can be retried."""
        appt = await book_in_progress(service, make_request)
        billing.fail_claims = True

        result = await service.complete_appointment(appt.id, 30)

        assert result.success
        assert result.appointment.status == AppointmentStatus.COMPLETED
        assert result.claim_id is None
        assert result.billing_failure.operation == "create_claim"
        assert "clearinghouse" in result.billing_failure.error
        assert len(service.failed_handoffs) == 1

        still_failing = await service.retry_failed_handoffs()
        assert len(still_failing) == 1

        billing.fail_claims = False
        assert await service.retry_failed_handoffs() == []
        assert service.get_appointment(appt.id).claim_id == "CLM-1"
        assert billing.claims[0].units == 2

    @pytest.mark.asyncio
    async def test_no_show(self, service, make_request, schedules):
        """A no-show keeps its slots reserved."""
        appt = await book(service, make_request)
        await service.confirm_appointment(appt.id)

        result = await service.mark_no_show(appt.id)

        assert result.success
        assert result.appointment.status == AppointmentStatus.NO_SHOW
        schedule = schedules.get_for("slp-001", NEXT_MONDAY)
        assert schedule.total_appointments == 1

    @pytest.mark.asyncio
    async def test_no_show_during_session_closes_session_log(self, service, make_request, session_logger):
        appt = await book_in_progress(service, make_request)

        result = await service.mark_no_show(appt.id)

        assert result.appointment.status == AppointmentStatus.NO_SHOW
        assert session_logger.ended == [("SES-1", "Patient left before the session ended", [])]

    @pytest.mark.asyncio
    async def test_no_show_requires_confirmation(self, service, make_request):
        appt = await book(service, make_request)
        result = await service.mark_no_show(appt.id)
        assert result.failure.reason == RejectionReason.INVALID_TRANSITION

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, service):
        for operation in (service.confirm_appointment, service.start_appointment, service.mark_no_show):
            result = await operation("APT-404")
            assert result.failure.reason == RejectionReason.NOT_FOUND

    @pytest.mark.asyncio
    async def test_session_logger_failure_does_not_block_start(self, service, make_request, session_logger):
        async def broken(*args):
            raise ConnectionError("session log down")

        session_logger.start_session = broken
        appt = await book(service, make_request)
        await service.confirm_appointment(appt.id)

        result = await service.start_appointment(appt.id)

        assert result.success
        assert result.appointment.status == AppointmentStatus.IN_PROGRESS
        assert result.appointment.session_id is None


class TestCancellation:
    """Tests for cancelling single appointments."""

    @pytest.mark.asyncio
    async def test_late_patient_cancellation(self, service, make_request, clock, billing, schedules):
        appt = await book(service, make_request)
        clock.set(datetime(2026, 3, 8, 20, 0))

        result = await service.cancel_appointment(appt.id, "sick", CancellationActor.PATIENT)

        assert result.success
        assert result.late_cancellation_fee is True
        cancelled = result.appointment
        assert cancelled.status == AppointmentStatus.CANCELLED
        assert cancelled.cancellation_reason == "sick"
        assert cancelled.cancelled_by == CancellationActor.PATIENT
        assert cancelled.late_cancellation_fee is True
        assert cancelled.notes.billing == "Cancelled by patient: sick"
        assert billing.late_fees == [appt.id]

        schedule = schedules.get_for("slp-001", NEXT_MONDAY)
        assert schedule.total_appointments == 0
        assert all(s.appointment_id is None for s in schedule.time_slots)

    @pytest.mark.asyncio
    async def test_late_professional_cancellation_has_no_fee(self, service, make_request, clock, billing):
        appt = await book(service, make_request)
        clock.set(datetime(2026, 3, 9, 9, 0))

        result = await service.cancel_appointment(appt.id, "illness", CancellationActor.PROFESSIONAL)

        assert result.late_cancellation_fee is False
        assert billing.late_fees == []

    @pytest.mark.asyncio
    async def test_early_cancellation_has_no_fee(self, service, make_request, billing):
        appt = await book(service, make_request)
        result = await service.cancel_appointment(appt.id, "travel", CancellationActor.PATIENT)

        assert result.late_cancellation_fee is False
        assert billing.late_fees == []

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, service, make_request):
        appt = await book(service, make_request)
        await service.cancel_appointment(appt.id, "travel")

        again = await service.create_appointment(make_request(patient_id="pat-002"))
        assert again.success

    @pytest.mark.asyncio
    async def test_cannot_cancel_completed(self, service, make_request):
        appt = await book_in_progress(service, make_request)
        await service.complete_appointment(appt.id, 30)

        result = await service.cancel_appointment(appt.id, "oops")

        assert result.failure.reason == RejectionReason.INVALID_TRANSITION
        assert service.get_appointment(appt.id).status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancelling_in_progress_closes_session_log(self, service, make_request, session_logger):
        """The session opened at start is closed when the session is cancelled midway."""
        appt = await book_in_progress(service, make_request)

        result = await service.cancel_appointment(appt.id, "fire alarm", CancellationActor.PROFESSIONAL)

        assert result.success
        assert result.appointment.session_id == "SES-1"
        assert session_logger.ended == [("SES-1", "Session cancelled: fire alarm", [])]

    @pytest.mark.asyncio
    async def test_cancelling_scheduled_appointment_leaves_session_log_alone(
        self, service, make_request, session_logger
    ):
        appt = await book(service, make_request)
        await service.cancel_appointment(appt.id, "travel")
        assert session_logger.ended == []

    @pytest.mark.asyncio
    async def test_late_fee_failure_is_recorded(self, service, make_request, clock, billing):
        appt = await book(service, make_request)
        clock.set(datetime(2026, 3, 9, 9, 0))
        billing.fail_fees = True

        result = await service.cancel_appointment(appt.id, "sick", CancellationActor.PATIENT)

        assert result.success
        assert result.billing_failure.operation == "late_cancellation_fee"
        billing.fail_fees = False
        assert await service.retry_failed_handoffs() == []
        assert billing.late_fees == [appt.id]


class TestReschedule:
    """Tests for moving an appointment."""

    @pytest.mark.asyncio
    async def test_moves_slots_and_keeps_identity(self, service, make_request, schedules):
        appt = await book(service, make_request)
        new_day = date(2026, 3, 10)

        result = await service.reschedule_appointment(appt.id, new_day, time(14, 0))

        assert result.success
        moved = result.appointment
        assert moved.id == appt.id
        assert moved.status == AppointmentStatus.RESCHEDULED
        assert (moved.scheduled_date, moved.scheduled_time) == (new_day, time(14, 0))
        assert moved.reschedule_history[0].previous_date == NEXT_MONDAY
        assert moved.reschedule_history[0].previous_time == time(10, 0)

        old = schedules.get_for("slp-001", NEXT_MONDAY)
        assert old.total_appointments == 0
        new = schedules.get_for("slp-001", new_day)
        assert [s.start_time for s in new.time_slots if s.appointment_id == appt.id] == [
            time(14, 0), time(14, 15),
        ]

        confirmed = await service.confirm_appointment(appt.id)
        assert confirmed.success

    @pytest.mark.asyncio
    async def test_shift_within_own_slot(self, service, make_request):
        """Moving by 15 minutes does not conflict with the appointment itself."""
        appt = await book(service, make_request)
        result = await service.reschedule_appointment(appt.id, NEXT_MONDAY, time(10, 15))
        assert result.success

    @pytest.mark.asyncio
    async def test_conflict_leaves_appointment_unchanged(self, service, make_request, schedules):
        appt = await book(service, make_request)
        other = await book(service, make_request, patient_id="pat-002", scheduled_time=time(14, 0))

        result = await service.reschedule_appointment(appt.id, NEXT_MONDAY, time(14, 15))

        assert not result.success
        assert result.failure.reason == RejectionReason.SCHEDULE_CONFLICT
        assert other.id in result.failure.detail
        current = service.get_appointment(appt.id)
        assert current.scheduled_time == time(10, 0)
        assert current.status == AppointmentStatus.SCHEDULED
        schedule = schedules.get_for("slp-001", NEXT_MONDAY)
        assert schedule.total_appointments == 2

    @pytest.mark.asyncio
    async def test_cannot_reschedule_in_progress(self, service, make_request):
        appt = await book_in_progress(service, make_request)
        result = await service.reschedule_appointment(appt.id, date(2026, 3, 10), time(9, 0))
        assert result.failure.reason == RejectionReason.INVALID_TRANSITION

    @pytest.mark.asyncio
    async def test_mixed_operations_never_overlap(self, service, make_request, appointments):
        """Bookings, cancellations and reschedules keep the calendar overlap free."""
        first = await book(service, make_request, scheduled_time=time(9, 0))
        second = await book(service, make_request, patient_id="pat-002", scheduled_time=time(9, 30))
        await book(service, make_request, patient_id="pat-003", scheduled_time=time(11, 0))

        await service.cancel_appointment(first.id, "travel")
        await service.reschedule_appointment(second.id, NEXT_MONDAY, time(9, 0))
        await service.create_appointment(make_request(patient_id="pat-004", scheduled_time=time(9, 15)))
        await service.create_appointment(make_request(patient_id="pat-005", scheduled_time=time(9, 30)))
        await service.reschedule_appointment(second.id, NEXT_MONDAY, time(10, 45))

        assert_no_overlaps(appointments)


class TestSeriesContinuation:
    """Completing a series instance books the next one when it is missing."""

    @pytest.mark.asyncio
    async def test_books_missing_next_instance(self, service, make_request):
        pattern = RecurrencePattern(pattern=RecurrenceFrequency.WEEKLY, end_date=date(2026, 3, 23))
        report = await service.create_recurring_appointments(make_request(), pattern)
        first, second, _ = report.created
        await service.cancel_appointment(second.id, "holiday travel")

        await service.confirm_appointment(first.id)
        await service.start_appointment(first.id)
        result = await service.complete_appointment(first.id, 30)

        nxt = result.next_appointment
        assert nxt is not None
        assert nxt.scheduled_date == date(2026, 3, 16)
        assert nxt.series_id == report.series_id
        assert nxt.id != second.id

    @pytest.mark.asyncio
    async def test_existing_next_instance_is_not_duplicated(self, service, make_request):
        pattern = RecurrencePattern(pattern=RecurrenceFrequency.WEEKLY, occurrence_count=3)
        report = await service.create_recurring_appointments(make_request(), pattern)
        first = report.created[0]

        await service.confirm_appointment(first.id)
        await service.start_appointment(first.id)
        result = await service.complete_appointment(first.id, 30)

        assert result.next_appointment is None
        assert len(service.appointments.in_series(report.series_id)) == 3


class TestQueries:
    """Tests for schedules, open slots and billing reports."""

    @pytest.mark.asyncio
    async def test_schedule_is_built_on_first_request(self, service):
        schedule = await service.get_professional_schedule("slp-001", NEXT_MONDAY)
        assert len(schedule.time_slots) == 36
        assert schedule.total_appointments == 0

    @pytest.mark.asyncio
    async def test_available_slots_use_type_duration(self, service, make_request):
        await book(service, make_request, scheduled_time=time(8, 0), duration_minutes=60)

        slots = await service.get_available_time_slots(
            "slp-001", NEXT_MONDAY, AppointmentType.EVALUATION
        )

        starts = [s.start_time for s in slots]
        assert time(8, 0) not in starts
        assert starts[0] == time(9, 0)
        assert all(
            (s.end_time.hour * 60 + s.end_time.minute) - (s.start_time.hour * 60 + s.start_time.minute) == 60
            for s in slots
        )

    @pytest.mark.asyncio
    async def test_available_slots_with_explicit_duration(self, service):
        slots = await service.get_available_time_slots("slp-001", NEXT_MONDAY, duration_minutes=15)
        assert len(slots) == 32

    @pytest.mark.asyncio
    async def test_available_slots_skip_off_grid_booking(self, service, make_request):
        """Slots only partly covered by an off-grid appointment are not offered."""
        await book(service, make_request, scheduled_time=time(9, 50), duration_minutes=30)

        slots = await service.get_available_time_slots("slp-001", NEXT_MONDAY, duration_minutes=15)

        starts = [s.start_time for s in slots]
        for taken in (time(9, 45), time(10, 0), time(10, 15)):
            assert taken not in starts
        assert time(9, 30) in starts
        assert time(10, 30) in starts
        assert len(slots) == 29

        listed = await service.create_appointment(make_request(
            patient_id="pat-002", scheduled_time=time(10, 30), duration_minutes=15
        ))
        assert listed.success

    @pytest.mark.asyncio
    async def test_billing_report(self, service, make_request, clock, billing):
        done = await book_in_progress(service, make_request, scheduled_time=time(9, 0))
        await service.complete_appointment(done.id, 30)

        evaluation = await book_in_progress(
            service, make_request,
            patient_id="pat-002",
            appointment_type=AppointmentType.EVALUATION,
            scheduled_time=time(13, 0),
            duration_minutes=60,
            billing=BillingInfo(cpt_code="92523", estimated_reimbursement=250.0),
        )
        billing.fail_claims = True
        await service.complete_appointment(evaluation.id, 60)

        late = await book(service, make_request, patient_id="pat-003", scheduled_time=time(15, 0))
        clock.set(datetime(2026, 3, 9, 8, 0))
        await service.cancel_appointment(late.id, "sick", CancellationActor.PATIENT)

        report = service.generate_billing_report("slp-001", date(2026, 3, 1), date(2026, 3, 31))

        summary = report["summary"]
        assert summary["total_appointments"] == 3
        assert summary["completed"] == 2
        assert summary["cancelled"] == 1
        assert summary["late_cancellations"] == 1
        assert summary["no_shows"] == 0
        assert summary["billable_hours"] == 1.5
        assert summary["total_billed"] == 370.0
        assert summary["claims_pending_retry"] == 1
        assert report["by_cpt_code"]["92507"] == {
            "count": 1, "total_billed": 120.0, "average_reimbursement": 120.0,
        }
        assert report["by_cpt_code"]["92523"]["count"] == 1

    @pytest.mark.asyncio
    async def test_billing_report_range_is_inclusive(self, service, make_request):
        await book(service, make_request)
        report = service.generate_billing_report("slp-001", NEXT_MONDAY, NEXT_MONDAY)
        assert report["summary"]["total_appointments"] == 1
        empty = service.generate_billing_report("slp-001", date(2026, 3, 10), date(2026, 3, 31))
        assert empty["summary"]["total_appointments"] == 0
