"""
Series Controller.

Scoped edits and cancellations across the instances of a recurring series.
A failure on one instance is reported and the rest of the series carries on.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .domain.models import (
    Appointment,
    CancellationActor,
    RejectionReason,
    SeriesCancelResult,
    SeriesFailure,
    SeriesScope,
    SeriesUpdateResult,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "scheduled_date",
    "scheduled_time",
    "duration_minutes",
    "appointment_type",
    "location_type",
    "location_details",
    "billing",
    "clinical",
    "reminders",
    "notes",
})

# Nested sections are merged with the existing values instead of replaced
NESTED_FIELDS = frozenset({"location_details", "billing", "clinical", "reminders", "notes"})

MOVE_FIELDS = ("scheduled_date", "scheduled_time", "duration_minutes")


class SeriesController:
    def __init__(self, service):
        self._service = service

    def _select(
        self,
        instances: List[Appointment],
        scope: SeriesScope,
        target: Optional[Appointment],
    ) -> List[Appointment]:
        if scope == SeriesScope.SINGLE:
            selected = [target] if target else []
        elif scope == SeriesScope.FUTURE:
            pivot = target.scheduled_date if target else self._service.clock.today()
            selected = [i for i in instances if i.scheduled_date >= pivot]
        else:
            selected = list(instances)
        return [i for i in selected if not i.is_terminal and not i.pending_verification]

    @staticmethod
    def _apply(current: Appointment, updates: Dict[str, Any]) -> Appointment:
        data = current.model_dump()
        for name, value in updates.items():
            if name in NESTED_FIELDS and isinstance(value, dict):
                data[name] = {**data[name], **value}
            else:
                data[name] = value
        return Appointment.model_validate(data)

    async def update(
        self,
        series_id: str,
        updates: Dict[str, Any],
        scope: SeriesScope = SeriesScope.ALL,
        target_id: Optional[str] = None,
    ) -> SeriesUpdateResult:
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be changed on a series: {', '.join(sorted(unknown))}")

        service = self._service
        result = SeriesUpdateResult()
        instances = service.appointments.in_series(series_id)
        if not instances:
            return result

        target = None
        if target_id is not None:
            target = next((i for i in instances if i.id == target_id), None)
            if target is None:
                result.failed.append(SeriesFailure(target_id, "appointment is not part of this series"))
                return result
        elif scope == SeriesScope.SINGLE:
            raise ValueError("A single-instance update needs a target appointment id")

        rescheduled = []
        async with service.lock_for(instances[0].professional_id):
            # Reload under the lock; instances cancelled or completed meanwhile are left alone
            instances = service.appointments.in_series(series_id)
            if target is not None:
                target = next((i for i in instances if i.id == target.id), None)
            for current in self._select(instances, scope, target):
                try:
                    candidate = self._apply(current, updates)
                except ValidationError as e:
                    result.failed.append(SeriesFailure(current.id, f"invalid update: {e.errors()[0]['msg']}"))
                    continue

                moved = any(getattr(candidate, f) != getattr(current, f) for f in MOVE_FIELDS)
                if moved:
                    conflicts = service.conflicts_for(
                        candidate.professional_id,
                        candidate.scheduled_date,
                        candidate.scheduled_time,
                        candidate.duration_minutes,
                        exclude_id=candidate.id,
                    )
                    if conflicts:
                        result.failed.append(
                            SeriesFailure(current.id, RejectionReason.SCHEDULE_CONFLICT.value)
                        )
                        continue

                if moved or "billing" in updates:
                    service.release_slots(current)
                    service.reserve_slots(candidate)
                if moved:
                    candidate.reminders.reminder_sent = False

                service.touch(candidate)
                service.appointments.save(candidate)
                result.updated.append(candidate.id)
                if moved or "reminders" in updates:
                    rescheduled.append(candidate)

        for appt in rescheduled:
            service.reminders.schedule(appt)

        logger.info(
            f"Series {series_id} update ({scope.value}): {len(result.updated)} updated, "
            f"{len(result.failed)} failed"
        )
        return result

    async def cancel(
        self,
        series_id: str,
        scope: SeriesScope,
        reason: str,
        actor: CancellationActor = CancellationActor.SYSTEM,
    ) -> SeriesCancelResult:
        if scope == SeriesScope.SINGLE:
            raise ValueError("Cancel a single instance with cancel_appointment")

        service = self._service
        result = SeriesCancelResult()
        instances = self._select(service.appointments.in_series(series_id), scope, None)

        for instance in instances:
            outcome = await service.cancel_appointment(instance.id, reason, actor)
            if outcome.success:
                result.cancelled += 1
                if outcome.late_cancellation_fee:
                    result.fees_applied += 1
            else:
                result.failed.append(SeriesFailure(instance.id, outcome.failure.detail))

        logger.info(
            f"Series {series_id} cancelled ({scope.value}): {result.cancelled} cancelled, "
            f"{result.fees_applied} late fees"
        )
        return result
