"""
Eligibility Gate.

Decides whether a requested session is allowed before it is booked:
insurance coverage via the external eligibility service, and the payer's
per-window session caps computed from the patient's own appointments.
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional, Sequence

from core.domain import PolicyDecision

from .collaborators import InsuranceEligibilityClient
from .data.repository import AppointmentRepository
from .domain.models import AppointmentType, EligibilityResult
from .domain.policies import LimitContext, SessionLimitPolicy

logger = logging.getLogger(__name__)


class EligibilityGate:
    def __init__(
        self,
        insurance: InsuranceEligibilityClient,
        appointments: AppointmentRepository,
        limits: Optional[SessionLimitPolicy] = None,
        timeout_seconds: float = 10.0,
    ):
        self._insurance = insurance
        self._appointments = appointments
        self.limits = limits or SessionLimitPolicy()
        self.timeout_seconds = timeout_seconds

    async def check_eligibility(
        self, patient_id: str, cpt_code: str, service_date: date
    ) -> EligibilityResult:
        """
        Ask the insurance collaborator about coverage.

        Timeouts and collaborator errors come back as not authorized so the
        booking is refused instead of failing.
        """
        try:
            return await asyncio.wait_for(
                self._insurance.verify(patient_id, cpt_code, service_date),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Insurance verification timed out for patient {patient_id}")
            return EligibilityResult(authorized=False, reason="Insurance verification timed out")
        except Exception as e:
            logger.warning(f"Insurance verification failed for patient {patient_id}: {e}")
            return EligibilityResult(authorized=False, reason=f"Insurance verification failed: {e}")

    def check_regulatory_limit(
        self,
        patient_id: str,
        appointment_type: AppointmentType,
        target_date: date,
        exclude_id: Optional[str] = None,
    ) -> PolicyDecision:
        context = LimitContext(
            patient_id=patient_id,
            appointment_type=appointment_type,
            target_date=target_date,
            patient_appointments=self._appointments.for_patient(patient_id, appointment_type),
            exclude_id=exclude_id,
        )
        decision = self.limits.evaluate(context)
        if decision.is_denied:
            logger.info(
                f"Session cap reached for patient {patient_id}: {appointment_type.value} "
                f"{decision.metadata.get('count')}/{decision.metadata.get('cap')} "
                f"per {decision.metadata.get('window')}"
            )
        return decision

    def series_warnings(
        self,
        patient_id: str,
        appointment_type: AppointmentType,
        projected_dates: Sequence[date],
    ) -> List[str]:
        existing = self._appointments.for_patient(patient_id, appointment_type)
        return self.limits.series_warnings(appointment_type, projected_dates, existing)
