"""
Recurrence Generator.

Expands a recurring booking request into individual appointments. Every
candidate date is either booked through the standard booking path, skipped
(exception, holiday or unresolvable conflict) or reported as failed, and the
outcome for each date lands in a RecurrenceReport.
"""

import logging
import uuid

from .domain.models import (
    AppointmentRequest,
    ConflictPolicy,
    FailedInstance,
    RecurrencePattern,
    RecurrenceReport,
    SeriesMembership,
    SkippedInstance,
)

logger = logging.getLogger(__name__)

SKIP_CONFLICT = "schedule conflict"
SKIP_NO_ALTERNATIVE = "schedule conflict - no alternative slot available"


class RecurrenceGenerator:
    def __init__(self, service):
        self._service = service

    async def expand(
        self, request: AppointmentRequest, pattern: RecurrencePattern
    ) -> RecurrenceReport:
        service = self._service
        calculator = service.calculator
        series_id = f"SER-{uuid.uuid4().hex[:12].upper()}"
        membership = SeriesMembership(
            series_id=series_id, pattern=pattern, start_date=request.scheduled_date
        )
        report = RecurrenceReport(series_id=series_id)

        projected = calculator.project(request.scheduled_date, pattern)
        report.warnings = service.gate.series_warnings(
            request.patient_id, request.appointment_type, projected
        )
        for warning in report.warnings:
            logger.warning(f"Series {series_id}: {warning}")

        lock = service.lock_for(request.professional_id)

        for day in calculator.candidate_dates(request.scheduled_date, pattern):
            if pattern.occurrence_count is not None and len(report.created) >= pattern.occurrence_count:
                break

            reason = calculator.is_excluded(day, pattern)
            if reason:
                report.skipped.append(SkippedInstance(day, reason))
                continue

            slot_time = request.scheduled_time
            async with lock:
                conflicts = service.conflicts_for(
                    request.professional_id, day, slot_time, request.duration_minutes
                )
                alternative = None
                if conflicts and pattern.conflict_policy == ConflictPolicy.AUTO_ADJUST:
                    alternative = service.nearest_open_slot(
                        request.professional_id, day, slot_time, request.duration_minutes
                    )

            if conflicts:
                if pattern.conflict_policy == ConflictPolicy.BLOCK:
                    report.skipped.append(SkippedInstance(day, SKIP_CONFLICT))
                    continue
                if pattern.conflict_policy == ConflictPolicy.AUTO_ADJUST:
                    if alternative is None:
                        report.skipped.append(SkippedInstance(day, SKIP_NO_ALTERNATIVE))
                        continue
                    logger.info(
                        f"Series {series_id}: moved {day} from {slot_time.strftime('%H:%M')} "
                        f"to {alternative.strftime('%H:%M')}"
                    )
                    slot_time = alternative
                # ConflictPolicy.ALLOW goes on to booking, which still refuses overlaps

            instance = request.model_copy(
                update={"scheduled_date": day, "scheduled_time": slot_time}, deep=True
            )
            result = await service.create_appointment(instance, series=membership, notify=False)
            if result.success:
                report.created.append(result.appointment)
            else:
                report.failed.append(FailedInstance(day, result.rejection.reason.value))

        logger.info(
            f"Series {series_id} expanded: {len(report.created)} created, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        if report.created:
            await service.send_series_summary(report, request)
        return report
