"""Reusable appointment templates for the common session kinds."""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, List, Optional

from .domain.models import (
    AppointmentRequest,
    AppointmentType,
    BillingInfo,
    ClinicalInfo,
    LocationType,
)

# Typical session length per kind, used when a caller asks for open slots
# without giving a duration
DEFAULT_DURATIONS = {
    AppointmentType.EVALUATION: 60,
    AppointmentType.INDIVIDUAL_THERAPY: 30,
    AppointmentType.GROUP_THERAPY: 45,
    AppointmentType.TELETHERAPY: 30,
    AppointmentType.CONSULTATION: 30,
    AppointmentType.ASSESSMENT: 60,
}


@dataclass
class AppointmentTemplate:
    id: str
    name: str
    appointment_type: AppointmentType
    duration_minutes: int
    cpt_code: str
    treatment_goals: List[str] = field(default_factory=list)
    materials_needed: List[str] = field(default_factory=list)
    location_type: LocationType = LocationType.IN_PERSON

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "appointment_type": self.appointment_type.value,
            "duration_minutes": self.duration_minutes,
            "cpt_code": self.cpt_code,
            "treatment_goals": list(self.treatment_goals),
            "materials_needed": list(self.materials_needed),
            "location_type": self.location_type.value,
        }

    def build_request(
        self,
        professional_id: str,
        patient_id: str,
        scheduled_date: date,
        scheduled_time: time,
        **overrides,
    ) -> AppointmentRequest:
        data = {
            "professional_id": professional_id,
            "patient_id": patient_id,
            "appointment_type": self.appointment_type,
            "scheduled_date": scheduled_date,
            "scheduled_time": scheduled_time,
            "duration_minutes": self.duration_minutes,
            "location_type": self.location_type,
            "billing": BillingInfo(cpt_code=self.cpt_code),
            "clinical": ClinicalInfo(
                treatment_goals=list(self.treatment_goals),
                materials_needed=list(self.materials_needed),
            ),
        }
        data.update(overrides)
        return AppointmentRequest.model_validate(data)


DEFAULT_TEMPLATES = {
    "eval_initial": AppointmentTemplate(
        id="eval_initial",
        name="Initial AAC Evaluation",
        appointment_type=AppointmentType.EVALUATION,
        duration_minutes=60,
        cpt_code="92523",
        treatment_goals=["Assess communication needs", "Determine AAC candidacy"],
        materials_needed=["Assessment tools", "Trial devices", "Evaluation forms"],
    ),
    "therapy_individual": AppointmentTemplate(
        id="therapy_individual",
        name="Individual AAC Therapy",
        appointment_type=AppointmentType.INDIVIDUAL_THERAPY,
        duration_minutes=30,
        cpt_code="92507",
        treatment_goals=["Improve AAC device navigation", "Increase vocabulary use"],
        materials_needed=["AAC device", "Therapy materials", "Data collection sheets"],
    ),
    "therapy_group": AppointmentTemplate(
        id="therapy_group",
        name="Group AAC Therapy",
        appointment_type=AppointmentType.GROUP_THERAPY,
        duration_minutes=45,
        cpt_code="92508",
        treatment_goals=["Peer interaction", "Social communication skills"],
        materials_needed=["Group activities", "Multiple AAC devices"],
    ),
}


def get_template(template_id: str) -> Optional[AppointmentTemplate]:
    return DEFAULT_TEMPLATES.get(template_id)
