"""
Clinical appointment scheduling.

Booking with insurance and session-cap checks, a per-professional slot
grid, recurring series and an appointment lifecycle that hands completed
sessions to billing.
"""

from .service import SchedulingService

__all__ = ["SchedulingService"]
