"""Scheduling data layer - repositories for appointments and day schedules."""

from .repository import (
    AppointmentRepository,
    InMemoryAppointmentRepository,
    InMemoryScheduleRepository,
    ScheduleRepository,
)

__all__ = [
    "AppointmentRepository",
    "InMemoryAppointmentRepository",
    "InMemoryScheduleRepository",
    "ScheduleRepository",
]
