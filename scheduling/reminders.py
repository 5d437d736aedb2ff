"""
Reminder Scheduler.

Keeps fire-once timers for appointment reminders on the running event loop.
Timers are a side channel: the appointment record stays the source of truth,
and every reschedule or cancellation replaces or drops the timers for that
appointment id.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Set

from core.clock import Clock, SystemClock

from .collaborators import ReminderDispatcher
from .domain.models import Appointment

logger = logging.getLogger(__name__)


@dataclass
class ReminderPlan:
    channel: str
    fire_at: datetime


def reminder_times(appointment: Appointment) -> List[ReminderPlan]:
    """Firing times derived from the appointment's reminder settings."""
    settings = appointment.reminders
    start = appointment.start_at
    plans = []

    if settings.patient_reminder:
        patient_at = start - timedelta(hours=settings.patient_reminder_hours)
        plans.append(ReminderPlan("patient", patient_at))
        if settings.parent_notification:
            plans.append(ReminderPlan("parent", patient_at))

    if settings.professional_reminder:
        plans.append(ReminderPlan(
            "professional", start - timedelta(minutes=settings.professional_reminder_minutes)
        ))

    return plans


class ReminderScheduler:
    def __init__(
        self,
        dispatcher: ReminderDispatcher,
        clock: Clock = None,
        on_sent: Optional[Callable[[str, str], Awaitable[None]]] = None,
    ):
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._on_sent = on_sent
        self._timers: Dict[str, List[asyncio.TimerHandle]] = {}
        self._plans: Dict[str, List[ReminderPlan]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, appointment: Appointment) -> List[ReminderPlan]:
        """Replace any timers for this appointment with freshly derived ones."""
        self.cancel(appointment.id)
        if appointment.is_terminal:
            return []

        loop = asyncio.get_running_loop()
        now = self._clock.now()
        handles = []
        installed = []

        for plan in reminder_times(appointment):
            delay = (plan.fire_at - now).total_seconds()
            if delay < 0:
                continue
            handles.append(loop.call_later(delay, self._fire, appointment.id, plan))
            installed.append(plan)

        if handles:
            self._timers[appointment.id] = handles
            self._plans[appointment.id] = installed
            logger.debug(f"Scheduled {len(handles)} reminders for appointment {appointment.id}")
        return installed

    def cancel(self, appointment_id: str) -> int:
        handles = self._timers.pop(appointment_id, [])
        for handle in handles:
            handle.cancel()
        self._plans.pop(appointment_id, None)
        return len(handles)

    def pending(self, appointment_id: str) -> List[ReminderPlan]:
        return list(self._plans.get(appointment_id, []))

    def shutdown(self) -> None:
        for appointment_id in list(self._timers):
            self.cancel(appointment_id)
        for task in list(self._tasks):
            task.cancel()

    def _fire(self, appointment_id: str, plan: ReminderPlan) -> None:
        plans = self._plans.get(appointment_id)
        if plans and plan in plans:
            plans.remove(plan)
            if not plans:
                self._plans.pop(appointment_id, None)
                self._timers.pop(appointment_id, None)

        task = asyncio.ensure_future(self._dispatch(appointment_id, plan.channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, appointment_id: str, channel: str) -> None:
        try:
            await self._dispatcher.send_reminder(appointment_id, channel)
        except Exception as e:
            logger.warning(f"Reminder for appointment {appointment_id} via {channel} failed: {e}")
            return
        if self._on_sent is not None:
            await self._on_sent(appointment_id, channel)
