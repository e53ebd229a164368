"""
Unit tests for the ticket query engine.
"""

import pytest
from datetime import datetime, timedelta, timezone

from src.core.shared.exceptions import ValidationError
from src.core.tickets.entities import (
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
)
from src.core.tickets.queries import (
    SortDirection,
    SortField,
    TicketFilters,
    TicketQueryEngine,
    TicketSort,
)

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ticket(number, title, priority=TicketPriority.MEDIUM, status=TicketStatus.OPEN,
           category=TicketCategory.GENERAL_INQUIRY, day=0, assignee=None):
    entity = TicketEntity.create(
        ticket_id=f"TK-{number:03d}",
        title=title,
        description=f"Description of {title.lower()}",
        user_id="user-1",
        priority=priority,
        category=category,
        now=BASE + timedelta(days=day),
    )
    entity.status = status
    if assignee:
        entity.assign_to("support-1", assignee, entity.created_at)
    return entity


@pytest.fixture
def tickets():
    return [
        ticket(1, "Email server down", TicketPriority.HIGH, TicketStatus.IN_PROGRESS,
               TicketCategory.SOFTWARE_SUPPORT, day=9, assignee="John Smith"),
        ticket(2, "Printer offline", TicketPriority.MEDIUM, TicketStatus.OPEN,
               TicketCategory.HARDWARE_PROBLEMS, day=7),
        ticket(3, "Phishing email report", TicketPriority.HIGH, TicketStatus.RESOLVED,
               TicketCategory.SECURITY_CONCERNS, day=4),
        ticket(4, "Laptop battery swelling", TicketPriority.CRITICAL, TicketStatus.OPEN,
               TicketCategory.HARDWARE_PROBLEMS, day=2),
        ticket(5, "Access request", TicketPriority.LOW, TicketStatus.CLOSED, day=1),
    ]


@pytest.fixture
def engine():
    return TicketQueryEngine()


def ids(items):
    return [t.id for t in items]


class TestFilters:
    """Filtering by dimension, search and date range."""

    def test_no_filters_returns_everything(self, engine, tickets):
        result = engine.run(tickets)

        assert result.total == 5

    def test_or_within_dimension(self, engine, tickets):
        filters = TicketFilters(statuses=frozenset({TicketStatus.OPEN, TicketStatus.CLOSED}))

        assert set(ids(engine.filter(tickets, filters))) == {"TK-002", "TK-004", "TK-005"}

    def test_and_across_dimensions(self, engine, tickets):
        filters = TicketFilters(
            statuses=frozenset({TicketStatus.OPEN}),
            categories=frozenset({TicketCategory.HARDWARE_PROBLEMS}),
            priorities=frozenset({TicketPriority.CRITICAL}),
        )

        assert ids(engine.filter(tickets, filters)) == ["TK-004"]

    def test_search_is_case_insensitive(self, engine, tickets):
        filters = TicketFilters(search="EMAIL")

        assert set(ids(engine.filter(tickets, filters))) == {"TK-001", "TK-003"}

    def test_search_matches_id_and_assignee(self, engine, tickets):
        assert ids(engine.filter(tickets, TicketFilters(search="tk-005"))) == ["TK-005"]
        assert ids(engine.filter(tickets, TicketFilters(search="smith"))) == ["TK-001"]

    def test_blank_search_is_ignored(self, engine, tickets):
        assert len(engine.filter(tickets, TicketFilters(search="   "))) == 5

    def test_date_range_is_inclusive(self, engine, tickets):
        filters = TicketFilters(
            created_from=BASE + timedelta(days=2),
            created_to=BASE + timedelta(days=7),
        )

        assert set(ids(engine.filter(tickets, filters))) == {"TK-002", "TK-003", "TK-004"}

    def test_reversed_date_range_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            TicketFilters(created_from=BASE + timedelta(days=1), created_to=BASE)

        assert exc_info.value.field == "created_from"

    def test_snapshot_left_unmodified(self, engine, tickets):
        before = ids(tickets)

        engine.run(tickets, sort=TicketSort(SortField.TITLE, SortDirection.ASC))

        assert ids(tickets) == before


class TestSorting:
    """Sort order and tie-breaking."""

    def test_default_is_newest_first(self, engine, tickets):
        result = engine.run(tickets)

        assert ids(result.items) == ["TK-001", "TK-002", "TK-003", "TK-004", "TK-005"]

    def test_priority_uses_severity(self, engine, tickets):
        result = engine.run(tickets, sort=TicketSort(SortField.PRIORITY, SortDirection.DESC))

        assert ids(result.items) == ["TK-004", "TK-001", "TK-003", "TK-002", "TK-005"]

    def test_ties_broken_by_id_ascending_in_both_directions(self, engine, tickets):
        asc = engine.run(tickets, sort=TicketSort(SortField.PRIORITY, SortDirection.ASC))

        assert ids(asc.items) == ["TK-005", "TK-002", "TK-001", "TK-003", "TK-004"]

    def test_status_uses_lifecycle_order(self, engine, tickets):
        result = engine.run(tickets, sort=TicketSort(SortField.STATUS, SortDirection.ASC))

        assert ids(result.items) == ["TK-002", "TK-004", "TK-001", "TK-003", "TK-005"]

    def test_title_ascending(self, engine, tickets):
        result = engine.run(tickets, sort=TicketSort(SortField.TITLE, SortDirection.ASC))

        assert ids(result.items)[0] == "TK-005"
        assert ids(result.items)[-1] == "TK-002"

    def test_numeric_id_tiebreak(self, engine):
        same_day = [ticket(n, f"Same ticket {n}") for n in (1000, 999, 2)]

        result = engine.run(same_day, sort=TicketSort(SortField.CREATED_AT, SortDirection.DESC))

        assert ids(result.items) == ["TK-002", "TK-999", "TK-1000"]

    @pytest.mark.parametrize("raw, expected", [
        ("created_at", SortField.CREATED_AT),
        ("updatedAt", SortField.UPDATED_AT),
        ("priority", SortField.PRIORITY),
    ])
    def test_sort_field_from_string(self, raw, expected):
        assert SortField.from_string(raw) == expected

    def test_unknown_sort_field(self):
        with pytest.raises(ValidationError) as exc_info:
            SortField.from_string("assignee")

        assert exc_info.value.field == "sort"

    def test_unknown_direction(self):
        with pytest.raises(ValidationError):
            SortDirection.from_string("sideways")


class TestPagination:
    """Page slicing."""

    def test_pages_partition_the_result(self, engine, tickets):
        sort = TicketSort(SortField.PRIORITY, SortDirection.DESC)
        pages = [engine.run(tickets, sort=sort, page=p, page_size=2) for p in (1, 2, 3)]

        assert [len(p.items) for p in pages] == [2, 2, 1]
        assert sum((ids(p.items) for p in pages), []) == ids(engine.run(tickets, sort=sort).items)
        assert [p.has_more for p in pages] == [True, True, False]

    def test_page_past_the_end_is_empty(self, engine, tickets):
        result = engine.run(tickets, page=10, page_size=2)

        assert result.items == []
        assert result.total == 5
        assert result.has_more is False

    def test_filtered_page(self, engine, tickets):
        """Filter OPEN, sort by priority desc, first page of 2."""
        result = engine.run(
            tickets,
            TicketFilters(statuses=frozenset({TicketStatus.OPEN})),
            TicketSort(SortField.PRIORITY, SortDirection.DESC),
            page=1,
            page_size=2,
        )

        assert ids(result.items) == ["TK-004", "TK-002"]
        assert result.total == 2

    @pytest.mark.parametrize("page, page_size", [(0, 10), (-1, 10), (1, 0), (1, 101)])
    def test_invalid_pagination(self, engine, tickets, page, page_size):
        with pytest.raises(ValidationError):
            engine.run(tickets, page=page, page_size=page_size)


class TestIdempotence:
    """Repeated queries against an unchanged repository."""

    def test_same_query_twice_gives_identical_results(self, ticket_repo, tickets):
        from src.core.tickets.use_cases import QueryTicketsService

        # Two extra tickets tied on every sortable timestamp
        tickets += [ticket(6, "Monitor flickers", day=7), ticket(7, "Keyboard sticks", day=7)]
        for entity in tickets:
            ticket_repo.add(entity)
        service = QueryTicketsService(ticket_repo=ticket_repo)
        filters = TicketFilters(priorities=frozenset({TicketPriority.MEDIUM, TicketPriority.HIGH}))
        sort = TicketSort(SortField.UPDATED_AT, SortDirection.DESC)

        first = service.execute(filters, sort, 1, 3)
        second = service.execute(filters, sort, 1, 3)

        assert first.to_dict() == second.to_dict()
        assert [item.id for item in first.items] == ["TK-001", "TK-002", "TK-006"]
        assert first.total == 5
        assert first.has_more is True

    def test_naive_date_bounds_are_read_as_utc(self, engine, tickets):
        naive = TicketFilters(
            created_from=datetime(2024, 1, 3),
            created_to=datetime(2024, 1, 8),
        )

        assert naive.created_from.tzinfo == timezone.utc
        assert set(ids(engine.filter(tickets, naive))) == {"TK-002", "TK-003", "TK-004"}
