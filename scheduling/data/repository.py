"""
Scheduling Repositories.

Appointments and professional day schedules are persisted behind the
core Repository interface. The in-memory backend keeps private copies of
every entity, so callers never share mutable state with the store.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from core.data import QueryOptions, QueryResult, Repository, apply_query_options

from ..domain.models import (
    Appointment,
    AppointmentType,
    ProfessionalSchedule,
    schedule_key,
)

logger = logging.getLogger(__name__)


def _appointment_order(appt: Appointment):
    return (appt.scheduled_date, appt.scheduled_time, appt.created_at)


class AppointmentRepository(Repository[Appointment]):
    """Appointment storage with the lookups the scheduling service needs."""

    def for_professional_on(self, professional_id: str, day: date) -> List[Appointment]:
        return self.find(QueryOptions(filters={
            "professional_id": professional_id,
            "scheduled_date": day,
        })).data

    def for_professional_between(
        self, professional_id: str, start: date, end: date
    ) -> List[Appointment]:
        return self.find(QueryOptions(filters={
            "professional_id": professional_id,
            "scheduled_date__gte": start,
            "scheduled_date__lte": end,
        })).data

    def for_patient(
        self, patient_id: str, appointment_type: Optional[AppointmentType] = None
    ) -> List[Appointment]:
        filters = {"patient_id": patient_id}
        if appointment_type is not None:
            filters["appointment_type"] = appointment_type
        return self.find(QueryOptions(filters=filters)).data

    def in_series(self, series_id: str) -> List[Appointment]:
        return self.find(QueryOptions(filters={"series_id": series_id})).data


class ScheduleRepository(Repository[ProfessionalSchedule]):
    """Per-day slot grids keyed by (professional, date)."""

    def get_for(self, professional_id: str, day: date) -> Optional[ProfessionalSchedule]:
        return self.get_by_id(schedule_key(professional_id, day))


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

class InMemoryAppointmentRepository(AppointmentRepository):
    def __init__(self):
        self._items: Dict[str, Appointment] = {}

    def get_by_id(self, id: str) -> Optional[Appointment]:
        appt = self._items.get(id)
        return appt.model_copy(deep=True) if appt else None

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[Appointment]:
        result = apply_query_options(self._items.values(), options, sort_key=_appointment_order)
        result.data = [appt.model_copy(deep=True) for appt in result.data]
        return result

    def save(self, entity: Appointment) -> Appointment:
        self._items[entity.id] = entity.model_copy(deep=True)
        return entity

    def delete(self, id: str) -> bool:
        return self._items.pop(id, None) is not None


class InMemoryScheduleRepository(ScheduleRepository):
    def __init__(self):
        self._items: Dict[str, ProfessionalSchedule] = {}

    def get_by_id(self, id: str) -> Optional[ProfessionalSchedule]:
        schedule = self._items.get(id)
        return schedule.model_copy(deep=True) if schedule else None

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[ProfessionalSchedule]:
        result = apply_query_options(
            self._items.values(),
            options,
            sort_key=lambda s: (s.professional_id, s.schedule_date),
        )
        result.data = [schedule.model_copy(deep=True) for schedule in result.data]
        return result

    def save(self, entity: ProfessionalSchedule) -> ProfessionalSchedule:
        self._items[entity.key] = entity.model_copy(deep=True)
        return entity

    def delete(self, id: str) -> bool:
        return self._items.pop(id, None) is not None
