"""
HTTP API for the Scheduling Service.

Thin FastAPI layer over SchedulingService. Rejections and invalid
transitions come back as 409 with a {reason, detail} body; unknown
appointments as 404.
"""

import logging
from datetime import date, time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from .domain.models import (
    AppointmentRequest,
    AppointmentType,
    BookingResult,
    CancellationActor,
    LifecycleResult,
    RecurrencePattern,
    RecurrenceReport,
    RejectionReason,
    SeriesScope,
)
from .service import SchedulingService
from .templates import DEFAULT_TEMPLATES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scheduling"])


def get_service(request: Request) -> SchedulingService:
    return request.app.state.scheduling_service


# =============================================================================
# REQUEST BODIES
# =============================================================================

class RecurringBookingRequest(BaseModel):
    appointment: AppointmentRequest
    pattern: RecurrencePattern


class TemplateBookingRequest(BaseModel):
    professional_id: str
    patient_id: str
    scheduled_date: date
    scheduled_time: time


class CompleteRequest(BaseModel):
    actual_duration_minutes: int = Field(gt=0)
    progress_notes: str = ""
    goals_addressed: List[str] = Field(default_factory=list)
    homework_assigned: Optional[str] = None
    billing_notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str
    actor: CancellationActor = CancellationActor.SYSTEM


class RescheduleRequest(BaseModel):
    new_date: date
    new_time: time


class SeriesUpdateRequest(BaseModel):
    updates: Dict[str, Any]
    scope: SeriesScope = SeriesScope.ALL
    target_id: Optional[str] = None


class SeriesCancelRequest(BaseModel):
    scope: SeriesScope = SeriesScope.FUTURE
    reason: str
    actor: CancellationActor = CancellationActor.SYSTEM


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

FAILURE_STATUS = {
    RejectionReason.NOT_FOUND: 404,
    RejectionReason.BELOW_MINIMUM_DURATION: 422,
}


def _booking_response(result: BookingResult) -> Dict[str, Any]:
    if not result.success:
        raise HTTPException(status_code=409, detail=result.rejection.to_dict())
    return result.appointment.model_dump(mode="json")


def _lifecycle_response(result: LifecycleResult) -> Dict[str, Any]:
    if not result.success:
        status = FAILURE_STATUS.get(result.failure.reason, 409)
        raise HTTPException(status_code=status, detail=result.failure.to_dict())
    return {
        "appointment": result.appointment.model_dump(mode="json"),
        "claim_id": result.claim_id,
        "late_cancellation_fee": result.late_cancellation_fee,
        "billing_failure": result.billing_failure.to_dict() if result.billing_failure else None,
        "next_appointment": (
            result.next_appointment.model_dump(mode="json") if result.next_appointment else None
        ),
    }


def _report_response(report: RecurrenceReport) -> Dict[str, Any]:
    return {
        "series_id": report.series_id,
        "created": [appt.model_dump(mode="json") for appt in report.created],
        "skipped": [
            {"date": s.scheduled_date.isoformat(), "reason": s.reason} for s in report.skipped
        ],
        "failed": [
            {"date": f.scheduled_date.isoformat(), "error": f.error} for f in report.failed
        ],
        "warnings": report.warnings,
    }


# =============================================================================
# APPOINTMENTS
# =============================================================================

@router.post("/appointments", status_code=201)
async def create_appointment(
    body: AppointmentRequest, service: SchedulingService = Depends(get_service)
):
    return _booking_response(await service.create_appointment(body))


@router.post("/appointments/recurring", status_code=201)
async def create_recurring_appointments(
    body: RecurringBookingRequest, service: SchedulingService = Depends(get_service)
):
    report = await service.create_recurring_appointments(body.appointment, body.pattern)
    return _report_response(report)


@router.post("/appointments/from-template/{template_id}", status_code=201)
async def create_from_template(
    template_id: str,
    body: TemplateBookingRequest,
    service: SchedulingService = Depends(get_service),
):
    if template_id not in DEFAULT_TEMPLATES:
        raise HTTPException(status_code=404, detail=f"Unknown template: {template_id}")
    result = await service.create_from_template(
        template_id,
        body.professional_id,
        body.patient_id,
        body.scheduled_date,
        body.scheduled_time,
    )
    return _booking_response(result)


@router.get("/appointments/{appointment_id}")
async def get_appointment(appointment_id: str, service: SchedulingService = Depends(get_service)):
    appt = service.get_appointment(appointment_id)
    if appt is None:
        raise HTTPException(status_code=404, detail=f"No appointment with id {appointment_id}")
    return appt.model_dump(mode="json")


@router.post("/appointments/{appointment_id}/confirm")
async def confirm_appointment(appointment_id: str, service: SchedulingService = Depends(get_service)):
    return _lifecycle_response(await service.confirm_appointment(appointment_id))


@router.post("/appointments/{appointment_id}/start")
async def start_appointment(appointment_id: str, service: SchedulingService = Depends(get_service)):
    return _lifecycle_response(await service.start_appointment(appointment_id))


@router.post("/appointments/{appointment_id}/complete")
async def complete_appointment(
    appointment_id: str,
    body: CompleteRequest,
    service: SchedulingService = Depends(get_service),
):
    result = await service.complete_appointment(
        appointment_id,
        body.actual_duration_minutes,
        progress_notes=body.progress_notes,
        goals_addressed=body.goals_addressed,
        homework_assigned=body.homework_assigned,
        billing_notes=body.billing_notes,
    )
    return _lifecycle_response(result)


@router.post("/appointments/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    body: CancelRequest,
    service: SchedulingService = Depends(get_service),
):
    return _lifecycle_response(
        await service.cancel_appointment(appointment_id, body.reason, body.actor)
    )


@router.post("/appointments/{appointment_id}/reschedule")
async def reschedule_appointment(
    appointment_id: str,
    body: RescheduleRequest,
    service: SchedulingService = Depends(get_service),
):
    return _lifecycle_response(
        await service.reschedule_appointment(appointment_id, body.new_date, body.new_time)
    )


@router.post("/appointments/{appointment_id}/no-show")
async def mark_no_show(appointment_id: str, service: SchedulingService = Depends(get_service)):
    return _lifecycle_response(await service.mark_no_show(appointment_id))


# =============================================================================
# SERIES
# =============================================================================

@router.patch("/series/{series_id}")
async def update_series(
    series_id: str,
    body: SeriesUpdateRequest,
    service: SchedulingService = Depends(get_service),
):
    try:
        result = await service.update_recurring_series(
            series_id, body.updates, body.scope, body.target_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "updated": result.updated,
        "failed": [{"appointment_id": f.appointment_id, "reason": f.reason} for f in result.failed],
    }


@router.post("/series/{series_id}/cancel")
async def cancel_series(
    series_id: str,
    body: SeriesCancelRequest,
    service: SchedulingService = Depends(get_service),
):
    try:
        result = await service.cancel_recurring_series(series_id, body.scope, body.reason, body.actor)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "cancelled": result.cancelled,
        "fees_applied": result.fees_applied,
        "failed": [{"appointment_id": f.appointment_id, "reason": f.reason} for f in result.failed],
    }


# =============================================================================
# SCHEDULES AND REPORTS
# =============================================================================

@router.get("/professionals/{professional_id}/schedule/{schedule_date}")
async def get_professional_schedule(
    professional_id: str,
    schedule_date: date,
    service: SchedulingService = Depends(get_service),
):
    schedule = await service.get_professional_schedule(professional_id, schedule_date)
    return schedule.model_dump(mode="json")


@router.get("/professionals/{professional_id}/available-slots")
async def get_available_time_slots(
    professional_id: str,
    schedule_date: date = Query(..., alias="date"),
    appointment_type: Optional[AppointmentType] = None,
    duration_minutes: Optional[int] = Query(default=None, gt=0),
    service: SchedulingService = Depends(get_service),
):
    slots = await service.get_available_time_slots(
        professional_id, schedule_date, appointment_type, duration_minutes
    )
    return [slot.model_dump(mode="json") for slot in slots]


@router.get("/professionals/{professional_id}/billing-report")
async def get_billing_report(
    professional_id: str,
    start: date,
    end: date,
    service: SchedulingService = Depends(get_service),
):
    return service.generate_billing_report(professional_id, start, end)


@router.get("/templates")
async def list_templates():
    return [template.to_dict() for template in DEFAULT_TEMPLATES.values()]


@router.post("/billing/retry")
async def retry_billing(service: SchedulingService = Depends(get_service)):
    remaining = await service.retry_failed_handoffs()
    return {"remaining": [failure.to_dict() for failure in remaining]}
