"""Tests for reminder timing and the timer lifecycle."""

import asyncio
from datetime import datetime, time, timedelta

import pytest

from core.clock import FixedClock
from scheduling.domain.models import Appointment, ReminderSettings
from scheduling.reminders import ReminderScheduler, reminder_times
from tests.conftest import NEXT_MONDAY, FakeDispatcher


def appointment_for(make_request, **overrides):
    request = make_request(**overrides)
    created = datetime(2026, 3, 1, 9, 0)
    return Appointment.model_validate({
        **request.model_dump(),
        "id": "APT-1",
        "created_at": created,
        "updated_at": created,
    })


class TestReminderTimes:
    """Tests for firing times derived from reminder settings."""

    def test_default_settings(self, make_request):
        plans = reminder_times(appointment_for(make_request))

        assert [(p.channel, p.fire_at) for p in plans] == [
            ("patient", datetime(2026, 3, 8, 10, 0)),
            ("professional", datetime(2026, 3, 9, 9, 45)),
        ]

    def test_parent_notification_follows_patient_reminder(self, make_request):
        appt = appointment_for(make_request, reminders=ReminderSettings(
            patient_reminder_hours=48, parent_notification=True, professional_reminder=False,
        ))
        plans = reminder_times(appt)

        assert [(p.channel, p.fire_at) for p in plans] == [
            ("patient", datetime(2026, 3, 7, 10, 0)),
            ("parent", datetime(2026, 3, 7, 10, 0)),
        ]

    def test_disabled(self, make_request):
        appt = appointment_for(make_request, reminders=ReminderSettings(
            patient_reminder=False, professional_reminder=False,
        ))
        assert reminder_times(appt) == []


class TestReminderScheduler:
    """Tests for installing, replacing and firing timers."""

    @pytest.mark.asyncio
    async def test_booking_installs_timers(self, service, make_request):
        result = await service.create_appointment(make_request())
        channels = [p.channel for p in service.reminders.pending(result.appointment.id)]
        assert channels == ["patient", "professional"]

    @pytest.mark.asyncio
    async def test_cancellation_drops_timers(self, service, make_request):
        result = await service.create_appointment(make_request())
        await service.cancel_appointment(result.appointment.id, "travel")
        assert service.reminders.pending(result.appointment.id) == []

    @pytest.mark.asyncio
    async def test_reschedule_replaces_timers(self, service, make_request):
        result = await service.create_appointment(make_request())
        appt_id = result.appointment.id

        await service.reschedule_appointment(appt_id, NEXT_MONDAY, time(15, 0))

        plans = service.reminders.pending(appt_id)
        assert [(p.channel, p.fire_at) for p in plans] == [
            ("patient", datetime(2026, 3, 8, 15, 0)),
            ("professional", datetime(2026, 3, 9, 14, 45)),
        ]

    @pytest.mark.asyncio
    async def test_past_reminders_are_not_installed(self, make_request):
        """Booked inside the reminder window, only the professional reminder is left."""
        scheduler = ReminderScheduler(FakeDispatcher(), FixedClock(datetime(2026, 3, 9, 8, 0)))
        plans = scheduler.schedule(appointment_for(make_request))
        try:
            assert [p.channel for p in plans] == ["professional"]
        finally:
            scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_timer_fires_dispatch(self, make_request):
        dispatcher = FakeDispatcher()
        appt = appointment_for(make_request, reminders=ReminderSettings(patient_reminder=False))
        # Professional reminder is due 15 minutes before 10:00
        now = datetime(2026, 3, 9, 9, 45) - timedelta(milliseconds=20)
        scheduler = ReminderScheduler(dispatcher, FixedClock(now))

        scheduler.schedule(appt)
        await asyncio.sleep(0.1)

        assert dispatcher.reminders == [("APT-1", "professional")]
        assert scheduler.pending("APT-1") == []
        scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_contained(self, make_request):
        dispatcher = FakeDispatcher()
        dispatcher.fail = True
        appt = appointment_for(make_request, reminders=ReminderSettings(patient_reminder=False))
        scheduler = ReminderScheduler(dispatcher, FixedClock(datetime(2026, 3, 9, 9, 45)))

        scheduler.schedule(appt)
        await asyncio.sleep(0.05)

        assert dispatcher.reminders == []
        scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_cancel_counts_timers(self, make_request):
        scheduler = ReminderScheduler(FakeDispatcher(), FixedClock(datetime(2026, 3, 2, 8, 0)))
        scheduler.schedule(appointment_for(make_request))

        assert scheduler.cancel("APT-1") == 2
        assert scheduler.cancel("APT-1") == 0

    @pytest.mark.asyncio
    async def test_delivered_reminder_marks_appointment(self, service, make_request, clock, dispatcher):
        clock.set(datetime(2026, 3, 9, 9, 45) - timedelta(milliseconds=20))
        result = await service.create_appointment(make_request())
        appt_id = result.appointment.id
        assert result.appointment.reminders.reminder_sent is False

        await asyncio.sleep(0.1)

        assert dispatcher.reminders == [(appt_id, "professional")]
        assert service.get_appointment(appt_id).reminders.reminder_sent is True

    @pytest.mark.asyncio
    async def test_failed_delivery_leaves_flag_unset(self, service, make_request, clock, dispatcher):
        dispatcher.fail = True
        clock.set(datetime(2026, 3, 9, 9, 45) - timedelta(milliseconds=20))
        result = await service.create_appointment(make_request())

        await asyncio.sleep(0.1)

        assert service.get_appointment(result.appointment.id).reminders.reminder_sent is False

    @pytest.mark.asyncio
    async def test_reschedule_clears_sent_flag(self, service, make_request, clock):
        clock.set(datetime(2026, 3, 9, 9, 45) - timedelta(milliseconds=20))
        result = await service.create_appointment(make_request())
        await asyncio.sleep(0.1)
        assert service.get_appointment(result.appointment.id).reminders.reminder_sent is True

        moved = await service.reschedule_appointment(result.appointment.id, NEXT_MONDAY, time(15, 0))

        assert moved.appointment.reminders.reminder_sent is False
