"""
Cosmos DB Repositories for the Scheduling Service.

Provides Azure Cosmos DB backed implementations of the appointment and
schedule repositories. Uses DefaultAzureCredential for flexible authentication.
"""

import logging
from datetime import date, time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity import DefaultAzureCredential

from core.data import QueryOptions, QueryResult, apply_query_options, split_filter_key
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    get_container_name,
)

from ..domain.models import Appointment, ProfessionalSchedule
from .repository import AppointmentRepository, ScheduleRepository, _appointment_order

logger = logging.getLogger(__name__)

# Filter fields that live below the document root
FIELD_PATHS = {
    "series_id": "c.recurrence.series_id",
}

SQL_OPERATORS = {
    "eq": "=",
    "ne": "!=",
    "gte": ">=",
    "lte": "<=",
}


class SchedulingCosmosClient:
    """Owns the Cosmos DB connection and caches container clients."""

    def __init__(self):
        """Initialize the Cosmos DB client."""
        logger.info("Initializing Scheduling Cosmos DB client...")
        self._credential = DefaultAzureCredential(
            exclude_interactive_browser_credential=False,
            exclude_shared_token_cache_credential=False,
        )
        self._client = CosmosClient(COSMOS_ENDPOINT, credential=self._credential)
        self._database = self._client.get_database_client(DATABASE_NAME)
        self._containers = {}
        logger.info("Scheduling Cosmos DB client initialized")

    def container(self, name: str):
        """Get a container client, caching for reuse."""
        if name not in self._containers:
            container_name = get_container_name(name)
            self._containers[name] = self._database.get_container_client(container_name)
        return self._containers[name]


# Singleton instance
_client: Optional[SchedulingCosmosClient] = None


def get_scheduling_client() -> SchedulingCosmosClient:
    """Get the singleton Cosmos DB client instance."""
    global _client
    if _client is None:
        _client = SchedulingCosmosClient()
    return _client


# =============================================================================
# QUERY BUILDING
# =============================================================================

def _to_document_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_document_value(v) for v in value]
    return value


def build_query(filters: Dict[str, Any]) -> Tuple[str, List[Dict[str, Any]]]:
    """Translate QueryOptions filters into a parameterized Cosmos SQL query."""
    clauses = []
    params = []
    for index, (key, value) in enumerate(filters.items()):
        name, op = split_filter_key(key)
        path = FIELD_PATHS.get(name, f"c.{name}")
        param = f"@p{index}"
        if op == "in":
            clauses.append(f"ARRAY_CONTAINS({param}, {path})")
        else:
            clauses.append(f"{path} {SQL_OPERATORS[op]} {param}")
        params.append({"name": param, "value": _to_document_value(value)})

    query = "SELECT * FROM c"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    return query, params


def _without_filters(options: Optional[QueryOptions]) -> QueryOptions:
    options = options or QueryOptions()
    return QueryOptions(
        limit=options.limit,
        offset=options.offset,
        order_by=options.order_by,
        order_desc=options.order_desc,
    )


# =============================================================================
# REPOSITORIES
# =============================================================================

class CosmosAppointmentRepository(AppointmentRepository):
    """Appointments container, partitioned by appointment id."""

    def __init__(self, container=None):
        self._container = container or get_scheduling_client().container("appointments")

    def get_by_id(self, id: str) -> Optional[Appointment]:
        try:
            doc = self._container.read_item(item=id, partition_key=id)
        except CosmosResourceNotFoundError:
            return None
        return Appointment.model_validate(doc)

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[Appointment]:
        query, params = build_query(options.filters if options else {})
        docs = self._container.query_items(
            query, parameters=params, enable_cross_partition_query=True
        )
        items = [Appointment.model_validate(doc) for doc in docs]
        return apply_query_options(items, _without_filters(options), sort_key=_appointment_order)

    def save(self, entity: Appointment) -> Appointment:
        self._container.upsert_item(entity.model_dump(mode="json"))
        return entity

    def delete(self, id: str) -> bool:
        try:
            self._container.delete_item(item=id, partition_key=id)
        except CosmosResourceNotFoundError:
            return False
        return True


class CosmosScheduleRepository(ScheduleRepository):
    """Professional schedules container, partitioned by professional id."""

    def __init__(self, container=None):
        self._container = container or get_scheduling_client().container("schedules")

    @staticmethod
    def _partition_for(key: str) -> str:
        return key.rsplit(":", 1)[0]

    def get_by_id(self, id: str) -> Optional[ProfessionalSchedule]:
        try:
            doc = self._container.read_item(item=id, partition_key=self._partition_for(id))
        except CosmosResourceNotFoundError:
            return None
        return ProfessionalSchedule.model_validate(doc)

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[ProfessionalSchedule]:
        query, params = build_query(options.filters if options else {})
        docs = self._container.query_items(
            query, parameters=params, enable_cross_partition_query=True
        )
        items = [ProfessionalSchedule.model_validate(doc) for doc in docs]
        return apply_query_options(
            items,
            _without_filters(options),
            sort_key=lambda s: (s.professional_id, s.schedule_date),
        )

    def save(self, entity: ProfessionalSchedule) -> ProfessionalSchedule:
        doc = entity.model_dump(mode="json")
        doc["id"] = entity.key
        self._container.upsert_item(doc)
        return entity

    def delete(self, id: str) -> bool:
        try:
            self._container.delete_item(item=id, partition_key=self._partition_for(id))
        except CosmosResourceNotFoundError:
            return False
        return True
