"""
Data Layer Base Classes.

The data layer provides the Repository pattern for data access.
This abstracts away the specific data store (Cosmos DB, in-memory, etc.)
and provides a clean interface for the scheduling service.

Key principles:
- Repositories handle CRUD operations only
- No business logic in repositories
- Return domain objects, not raw dicts
- Support for different backends via dependency injection

Filters:
    QueryOptions.filters maps a field name to a value. A suffix selects the
    comparison: ``field__in``, ``field__ne``, ``field__gte``, ``field__lte``.
    A bare field name means equality.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

# Type variable for entity types
T = TypeVar("T")

FILTER_OPERATORS = ("in", "ne", "gte", "lte")


@dataclass
class QueryOptions:
    """Options for repository queries."""
    limit: Optional[int] = None
    offset: int = 0
    order_by: Optional[str] = None
    order_desc: bool = False
    filters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult(Generic[T]):
    """Result of a repository query with pagination info."""
    data: List[T]
    total_count: int
    has_more: bool
    next_offset: Optional[int] = None


class Repository(ABC, Generic[T]):
    """
    Abstract base class for repositories.

    A Repository provides data access methods for a specific entity type.
    It abstracts the underlying data store and provides a consistent interface.

    Type parameter T represents the entity type this repository manages.

    Example:
        class AppointmentRepository(Repository[Appointment]):
            def get_by_id(self, id: str) -> Optional[Appointment]:
                doc = self._container.read_item(id, id)
                return Appointment.model_validate(doc) if doc else None
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """
        Get an entity by its ID.

        Args:
            id: The entity's unique identifier

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[T]:
        """
        Find entities matching the query options.

        Args:
            options: Query options for filtering, pagination, sorting

        Returns:
            QueryResult containing the matching entities
        """
        pass

    @abstractmethod
    def save(self, entity: T) -> T:
        """
        Save an entity (create or update).

        Args:
            entity: The entity to save

        Returns:
            The saved entity
        """
        pass

    @abstractmethod
    def delete(self, id: str) -> bool:
        """
        Delete an entity by ID.

        Args:
            id: The entity's unique identifier

        Returns:
            True if deleted, False if not found
        """
        pass


# =============================================================================
# FILTER HELPERS (shared by in-memory backends and query builders)
# =============================================================================

def split_filter_key(key: str) -> Tuple[str, str]:
    """Split ``field__op`` into (field, op); bare fields use ``eq``."""
    if "__" in key:
        name, op = key.rsplit("__", 1)
        if op in FILTER_OPERATORS:
            return name, op
    return key, "eq"


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op == "eq":
        return actual == expected
    if op == "ne":
        return actual != expected
    if op == "in":
        return actual in expected
    if actual is None:
        return False
    if op == "gte":
        return actual >= expected
    if op == "lte":
        return actual <= expected
    raise ValueError(f"Unsupported filter operator: {op}")


def matches_filters(entity: Any, filters: Dict[str, Any]) -> bool:
    """Check an entity (object or dict) against QueryOptions-style filters."""
    for key, expected in filters.items():
        name, op = split_filter_key(key)
        if isinstance(entity, dict):
            actual = entity.get(name)
        else:
            actual = getattr(entity, name, None)
        if not _compare(actual, op, expected):
            return False
    return True


def apply_query_options(
    items: Iterable[T],
    options: Optional[QueryOptions],
    sort_key: Optional[Callable[[T], Any]] = None,
) -> QueryResult[T]:
    """Filter, sort and page an in-memory collection."""
    options = options or QueryOptions()
    matched = [item for item in items if matches_filters(item, options.filters)]

    if options.order_by:
        matched.sort(
            key=lambda item: getattr(item, options.order_by),
            reverse=options.order_desc,
        )
    elif sort_key is not None:
        matched.sort(key=sort_key, reverse=options.order_desc)

    total = len(matched)
    start = options.offset
    end = total if options.limit is None else start + options.limit
    page = matched[start:end]
    has_more = end < total

    return QueryResult(
        data=page,
        total_count=total,
        has_more=has_more,
        next_offset=end if has_more else None,
    )
