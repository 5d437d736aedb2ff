"""
Domain Layer Base Classes.

The domain layer contains pure business logic with no external dependencies.
This makes scheduling rules:
- Easy to test (no mocking needed)
- Reusable across the service and the HTTP surface
- Clear and self-documenting

Example Usage:
    class SessionLimitPolicy(PolicyEngine):
        def evaluate(self, context) -> PolicyDecision:
            # Pure business logic here
            ...
"""

import calendar
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List


class PolicyResult(Enum):
    """Result of a policy evaluation."""
    APPROVED = "approved"
    DENIED = "denied"
    CONDITIONAL = "conditional"


@dataclass
class PolicyDecision:
    """
    The outcome of a policy evaluation.

    Attributes:
        result: The policy decision result
        reason: Human-readable explanation
        conditions: Any conditions that must be met (for CONDITIONAL results)
        metadata: Additional context for the decision
    """
    result: PolicyResult
    reason: str
    conditions: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_approved(self) -> bool:
        return self.result == PolicyResult.APPROVED

    @property
    def is_denied(self) -> bool:
        return self.result == PolicyResult.DENIED

    @classmethod
    def approve(cls, reason: str, **metadata) -> "PolicyDecision":
        return cls(result=PolicyResult.APPROVED, reason=reason, metadata=metadata)

    @classmethod
    def deny(cls, reason: str, **metadata) -> "PolicyDecision":
        return cls(result=PolicyResult.DENIED, reason=reason, metadata=metadata)


class PolicyEngine(ABC):
    """
    Abstract base class for policy engines.

    A PolicyEngine encapsulates a set of business rules that can be
    evaluated against a context to produce a decision.

    Example:
        class CancellationPolicy(PolicyEngine):
            def evaluate(self, context) -> PolicyDecision:
                if context.hours_until_start < 24:
                    return PolicyDecision.deny("Late cancellation")
                return PolicyDecision.approve("Free cancellation")
    """

    @abstractmethod
    def evaluate(self, context: Any) -> PolicyDecision:
        """
        Evaluate the policy against the given context.

        Args:
            context: Object or dictionary containing all data needed for evaluation

        Returns:
            PolicyDecision with the result and explanation
        """
        pass

    def explain(self, context: Any) -> str:
        """
        Provide a human-readable explanation of how the policy would be applied.

        Default implementation returns the reason from evaluate().
        """
        decision = self.evaluate(context)
        return decision.reason


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def parse_time(value: str) -> time:
    """Parse an "HH:MM" string into a time of day."""
    hour, minute = map(int, value.split(":"))
    return time(hour=hour, minute=minute)


def to_minutes(value: time) -> int:
    """Minutes since midnight for a time of day."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Time of day for a number of minutes since midnight."""
    return time(hour=minutes // 60, minute=minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    return from_minutes(to_minutes(value) + minutes)


def add_months(day: date, months: int) -> date:
    """Add calendar months, clamping to the last valid day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from start to end."""
    return (end - start).total_seconds() / 3600


def week_key(day: date) -> tuple:
    """ISO (year, week) pair; weeks run Monday through Sunday."""
    iso = day.isocalendar()
    return (iso[0], iso[1])
