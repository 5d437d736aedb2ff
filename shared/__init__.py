"""
Shared modules for the Clinical Scheduling Service.

This package contains shared configuration used by the service and scripts.
"""

from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    SCHEDULING_CONTAINERS,
)

__all__ = [
    "COSMOS_ENDPOINT",
    "DATABASE_NAME",
    "SCHEDULING_CONTAINERS",
]
