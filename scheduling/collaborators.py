"""
External Collaborators.

Interfaces for the systems the scheduler talks to but does not own:
insurance eligibility, billing, clinical session logging and reminder
delivery. The in-process implementations below back local runs and the
default application wiring.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .domain.models import ClaimHandoff, EligibilityResult
from .domain.policies import requires_prior_auth

logger = logging.getLogger(__name__)


# =============================================================================
# INTERFACES
# =============================================================================

class InsuranceEligibilityClient(ABC):
    @abstractmethod
    async def verify(self, patient_id: str, cpt_code: str, service_date: date) -> EligibilityResult:
        """Is this patient covered for this procedure on this date?"""
        pass


class BillingClient(ABC):
    @abstractmethod
    async def create_claim(self, handoff: ClaimHandoff) -> str:
        """Open a claim for a completed session. Returns the claim id."""
        pass

    @abstractmethod
    async def apply_late_cancellation_fee(self, appointment_id: str) -> None:
        pass


class SessionLogger(ABC):
    @abstractmethod
    async def start_session(self, patient_id: str, description: str, goals: List[str]) -> str:
        """Open a clinical session log. Returns the session id."""
        pass

    @abstractmethod
    async def end_session(self, session_id: str, notes: str, goals_addressed: List[str]) -> None:
        pass


class ReminderDispatcher(ABC):
    @abstractmethod
    async def send_reminder(self, appointment_id: str, channel: str) -> None:
        pass

    async def notify(self, recipient_id: str, subject: str, payload: Dict[str, Any]) -> None:
        """Free-form notification (booking confirmations, series summaries)."""
        logger.info(f"Notification for {recipient_id}: {subject}")


# =============================================================================
# IN-PROCESS IMPLEMENTATIONS
# =============================================================================

class LocalInsuranceEligibility(InsuranceEligibilityClient):
    """
    Eligibility from a local table of patient authorizations.

    A patient is covered when registered with an authorization that has not
    expired by the service date. Prior authorization is flagged from the
    procedure code.
    """

    def __init__(
        self,
        authorizations: Optional[Dict[str, Optional[date]]] = None,
        allow_unregistered: bool = False,
    ):
        self._authorizations: Dict[str, Optional[date]] = dict(authorizations or {})
        self.allow_unregistered = allow_unregistered

    def register(self, patient_id: str, valid_until: Optional[date] = None) -> None:
        self._authorizations[patient_id] = valid_until

    async def verify(self, patient_id: str, cpt_code: str, service_date: date) -> EligibilityResult:
        if patient_id not in self._authorizations:
            if self.allow_unregistered:
                return EligibilityResult(authorized=True, prior_auth_required=requires_prior_auth(cpt_code))
            return EligibilityResult(authorized=False, reason="No active insurance authorization found")

        valid_until = self._authorizations[patient_id]
        if valid_until is not None and valid_until < service_date:
            return EligibilityResult(
                authorized=False,
                reason=f"Insurance authorization expired on {valid_until.isoformat()}",
            )

        return EligibilityResult(authorized=True, prior_auth_required=requires_prior_auth(cpt_code))


class InMemoryBillingLedger(BillingClient):
    def __init__(self):
        self.claims: Dict[str, ClaimHandoff] = {}
        self.late_fees: List[str] = []

    async def create_claim(self, handoff: ClaimHandoff) -> str:
        claim_id = f"CLM-{uuid.uuid4().hex[:12].upper()}"
        self.claims[claim_id] = handoff
        logger.info(
            f"Claim {claim_id} opened for appointment {handoff.appointment_id}: "
            f"{handoff.units} units of {handoff.cpt_code}"
        )
        return claim_id

    async def apply_late_cancellation_fee(self, appointment_id: str) -> None:
        self.late_fees.append(appointment_id)
        logger.info(f"Late cancellation fee recorded for appointment {appointment_id}")


class InMemorySessionLog(SessionLogger):
    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}

    async def start_session(self, patient_id: str, description: str, goals: List[str]) -> str:
        session_id = f"SES-{uuid.uuid4().hex[:12].upper()}"
        self.sessions[session_id] = {
            "patient_id": patient_id,
            "description": description,
            "goals": list(goals),
            "open": True,
        }
        return session_id

    async def end_session(self, session_id: str, notes: str, goals_addressed: List[str]) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        session.update({"open": False, "notes": notes, "goals_addressed": list(goals_addressed)})


class LoggingReminderDispatcher(ReminderDispatcher):
    """Writes reminders to the log; keeps a record of what was sent."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.notifications: List[Tuple[str, str, Dict[str, Any]]] = []

    async def send_reminder(self, appointment_id: str, channel: str) -> None:
        self.sent.append((appointment_id, channel))
        logger.info(f"Reminder sent for appointment {appointment_id} via {channel}")

    async def notify(self, recipient_id: str, subject: str, payload: Dict[str, Any]) -> None:
        self.notifications.append((recipient_id, subject, payload))
        logger.info(f"Notification for {recipient_id}: {subject}")
