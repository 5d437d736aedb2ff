"""
Core Framework for the Clinical Scheduling Service.

This module provides the base classes and interfaces that the scheduling
package builds on. The layered architecture keeps:

1. Domain Layer - Pure business rules, no I/O
2. Data Layer - Repository pattern for data access
3. Clock - Injectable source of "now"

Each scheduling component follows this pattern for consistency and testability.
"""

from .clock import Clock, FixedClock, SystemClock
from .data import QueryOptions, QueryResult, Repository
from .domain import PolicyDecision, PolicyEngine, PolicyResult

__all__ = [
    # Domain
    "PolicyDecision",
    "PolicyEngine",
    "PolicyResult",
    # Data
    "QueryOptions",
    "QueryResult",
    "Repository",
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
]
