"""Shared fixtures: a pinned clock, recording collaborators and a wired service."""

import asyncio
from datetime import date, datetime, time
from typing import List

import pytest

from config import Settings
from core.clock import FixedClock
from scheduling.collaborators import (
    BillingClient,
    InsuranceEligibilityClient,
    ReminderDispatcher,
    SessionLogger,
)
from scheduling.data import InMemoryAppointmentRepository, InMemoryScheduleRepository
from scheduling.domain.models import (
    AppointmentRequest,
    AppointmentType,
    BillingInfo,
    ClaimHandoff,
    EligibilityResult,
    ReminderSettings,
)
from scheduling.service import SchedulingService

# Monday 2 March 2026, 08:00
NOW = datetime(2026, 3, 2, 8, 0)
# Monday of the following week
NEXT_MONDAY = date(2026, 3, 9)


class FakeInsurance(InsuranceEligibilityClient):
    def __init__(self):
        self.denied = set()
        self.prior_auth_required = False
        self.error = None
        self.delay = 0.0
        self.calls = []

    async def verify(self, patient_id, cpt_code, service_date):
        self.calls.append((patient_id, cpt_code, service_date))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if patient_id in self.denied:
            return EligibilityResult(authorized=False, reason="Coverage terminated")
        return EligibilityResult(authorized=True, prior_auth_required=self.prior_auth_required)


class FakeBilling(BillingClient):
    def __init__(self):
        self.claims: List[ClaimHandoff] = []
        self.late_fees: List[str] = []
        self.fail_claims = False
        self.fail_fees = False

    async def create_claim(self, handoff):
        if self.fail_claims:
            raise ConnectionError("clearinghouse unavailable")
        self.claims.append(handoff)
        return f"CLM-{len(self.claims)}"

    async def apply_late_cancellation_fee(self, appointment_id):
        if self.fail_fees:
            raise ConnectionError("billing unavailable")
        self.late_fees.append(appointment_id)


class FakeSessionLogger(SessionLogger):
    def __init__(self):
        self.started = []
        self.ended = []

    async def start_session(self, patient_id, description, goals):
        self.started.append((patient_id, description, list(goals)))
        return f"SES-{len(self.started)}"

    async def end_session(self, session_id, notes, goals_addressed):
        self.ended.append((session_id, notes, list(goals_addressed)))


class FakeDispatcher(ReminderDispatcher):
    def __init__(self):
        self.reminders = []
        self.notifications = []
        self.fail = False

    async def send_reminder(self, appointment_id, channel):
        if self.fail:
            raise ConnectionError("sms gateway down")
        self.reminders.append((appointment_id, channel))

    async def notify(self, recipient_id, subject, payload):
        self.notifications.append((recipient_id, subject, payload))


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def insurance():
    return FakeInsurance()


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def session_logger():
    return FakeSessionLogger()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def appointments():
    return InMemoryAppointmentRepository()


@pytest.fixture
def schedules():
    return InMemoryScheduleRepository()


@pytest.fixture
def make_service(appointments, schedules, insurance, billing, session_logger, dispatcher, clock):
    """Factory for a service with optional settings overrides."""
    created = []

    def _make(**overrides):
        settings = Settings(eligibility_timeout_seconds=0.2, **overrides)
        service = SchedulingService(
            appointments=appointments,
            schedules=schedules,
            insurance=insurance,
            billing=billing,
            session_logger=session_logger,
            dispatcher=dispatcher,
            clock=clock,
            settings=settings,
        )
        created.append(service)
        return service

    yield _make
    for service in created:
        service.shutdown()


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def make_request():
    """Factory for booking requests; defaults to a 30 minute individual session."""

    def _make(**overrides):
        data = {
            "professional_id": "slp-001",
            "patient_id": "pat-001",
            "appointment_type": AppointmentType.INDIVIDUAL_THERAPY,
            "scheduled_date": NEXT_MONDAY,
            "scheduled_time": time(10, 0),
            "duration_minutes": 30,
            "billing": BillingInfo(
                cpt_code="92507",
                estimated_reimbursement=120.0,
                copay_amount=20.0,
            ),
            "reminders": ReminderSettings(),
        }
        data.update(overrides)
        return AppointmentRequest.model_validate(data)

    return _make
