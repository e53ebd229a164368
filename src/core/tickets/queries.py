"""
Query engine over a ticket snapshot.

Composes filter predicates, a sort comparator and pagination. The engine
only reads: it works on the list it is given and never touches the
repository.

Algorithm:
    1. Filter: AND across dimensions, OR within a dimension's set
    2. Search: case-insensitive substring of title, description, id or
       assignee name
    3. Sort on the requested field; ties broken by id ascending
    4. Slice [(page - 1) * page_size, page * page_size)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional
import logging

from src.core.shared.exceptions import ValidationError

from .entities import (
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
    ticket_id_sort_key,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class SortField(Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    PRIORITY = "priority"
    STATUS = "status"
    TITLE = "title"

    @classmethod
    def from_string(cls, value: str) -> "SortField":
        """
        Accepts snake_case or camelCase names ("updated_at", "updatedAt").

        Raises:
            ValidationError: If the field cannot be sorted on
        """
        if isinstance(value, cls):
            return value
        raw = (value or "").strip()
        normalized = "".join(
            f"_{char.lower()}" if char.isupper() else char for char in raw
        ).lstrip("_")
        for member in cls:
            if member.value == normalized:
                return member
        allowed = ", ".join(member.value for member in cls)
        raise ValidationError(
            f"Cannot sort by {value!r}. Allowed fields: {allowed}",
            field="sort",
        )


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def from_string(cls, value: str) -> "SortDirection":
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValidationError(
            f"Invalid sort direction: {value!r}. Use 'asc' or 'desc'",
            field="direction",
        )


_SORT_KEYS: Dict[SortField, Callable[[TicketEntity], Any]] = {
    SortField.CREATED_AT: lambda ticket: ticket.created_at,
    SortField.UPDATED_AT: lambda ticket: ticket.updated_at,
    SortField.PRIORITY: lambda ticket: ticket.priority.severity,
    SortField.STATUS: lambda ticket: ticket.status.order,
    SortField.TITLE: lambda ticket: ticket.title.casefold(),
}


@dataclass(frozen=True)
class TicketFilters:
    """
    Filter specification.

    Empty sets and None values mean "no constraint" for that dimension.

    Attributes:
        statuses: Keep tickets whose status is in the set
        priorities: Keep tickets whose priority is in the set
        categories: Keep tickets whose category is in the set
        search: Free-text search term
        created_from: Inclusive lower bound on created_at
        created_to: Inclusive upper bound on created_at
    """

    statuses: FrozenSet[TicketStatus] = field(default_factory=frozenset)
    priorities: FrozenSet[TicketPriority] = field(default_factory=frozenset)
    categories: FrozenSet[TicketCategory] = field(default_factory=frozenset)
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def __post_init__(self):
        # Naive bounds are read as UTC, like every stored timestamp
        for name in ("created_from", "created_to"):
            moment = getattr(self, name)
            if moment is not None and moment.tzinfo is None:
                object.__setattr__(self, name, moment.replace(tzinfo=timezone.utc))

        if (
            self.created_from is not None
            and self.created_to is not None
            and self.created_from > self.created_to
        ):
            raise ValidationError(
                "Start of the date range must not be after its end",
                field="created_from",
            )

    @property
    def search_term(self) -> Optional[str]:
        if self.search is None:
            return None
        term = self.search.strip().casefold()
        return term or None

    def matches(self, ticket: TicketEntity) -> bool:
        if self.statuses and ticket.status not in self.statuses:
            return False
        if self.priorities and ticket.priority not in self.priorities:
            return False
        if self.categories and ticket.category not in self.categories:
            return False
        if self.created_from is not None and ticket.created_at < self.created_from:
            return False
        if self.created_to is not None and ticket.created_at > self.created_to:
            return False

        term = self.search_term
        if term is not None:
            haystack = (
                ticket.title,
                ticket.description,
                ticket.id,
                ticket.assignee_name or "",
            )
            if not any(term in text.casefold() for text in haystack):
                return False

        return True


@dataclass(frozen=True)
class TicketSort:
    field: SortField = SortField.CREATED_AT
    direction: SortDirection = SortDirection.DESC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC


@dataclass
class QueryResult:
    """
    One page of matching tickets.

    Attributes:
        items: Tickets on the page, in sort order
        total: Matching tickets before pagination
        page: Requested page (1-indexed)
        page_size: Requested page size
    """

    items: List[TicketEntity]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


class TicketQueryEngine:
    """
    Runs filter, sort and pagination over a ticket snapshot.

    Example:
        engine = TicketQueryEngine()
        result = engine.run(
            repo.list_all(),
            TicketFilters(statuses=frozenset({TicketStatus.OPEN})),
            TicketSort(SortField.PRIORITY, SortDirection.DESC),
            page=1,
            page_size=2,
        )
    """

    def __init__(self, max_page_size: int = MAX_PAGE_SIZE):
        self.max_page_size = max_page_size

    def validate_page(self, page: int, page_size: int) -> None:
        """
        Raises:
            ValidationError: If page < 1 or page_size is out of range
        """
        if page < 1:
            raise ValidationError("Page must be 1 or greater", field="page")
        if page_size < 1 or page_size > self.max_page_size:
            raise ValidationError(
                f"Page size must be between 1 and {self.max_page_size}",
                field="page_size",
            )

    def filter(self, tickets: Iterable[TicketEntity], filters: TicketFilters) -> List[TicketEntity]:
        return [ticket for ticket in tickets if filters.matches(ticket)]

    def sort(self, tickets: Iterable[TicketEntity], sort: TicketSort) -> List[TicketEntity]:
        """
        Stable two-pass sort: id ascending first, then the requested key.

        Python's sort keeps equal elements in their previous order, also
        when reverse=True, so ties stay in id order in both directions.
        """
        ordered = sorted(tickets, key=lambda ticket: ticket_id_sort_key(ticket.id))
        ordered.sort(key=_SORT_KEYS[sort.field], reverse=sort.descending)
        return ordered

    def run(
        self,
        tickets: Iterable[TicketEntity],
        filters: Optional[TicketFilters] = None,
        sort: Optional[TicketSort] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> QueryResult:
        """
        Run a query.

        Args:
            tickets: Snapshot to query (left unmodified)
            filters: Filter specification (no filtering if None)
            sort: Sort specification (created_at desc if None)
            page: Page number, 1-indexed
            page_size: Items per page

        Returns:
            QueryResult with the page slice and the filtered total

        Raises:
            ValidationError: On invalid pagination
        """
        self.validate_page(page, page_size)
        filters = filters or TicketFilters()
        sort = sort or TicketSort()

        matches = self.sort(self.filter(tickets, filters), sort)
        start = (page - 1) * page_size
        items = matches[start:start + page_size]

        logger.debug(
            f"Query matched {len(matches)} tickets, "
            f"page {page} returns {len(items)} (sort={sort.field.value} {sort.direction.value})"
        )
        return QueryResult(items=items, total=len(matches), page=page, page_size=page_size)
