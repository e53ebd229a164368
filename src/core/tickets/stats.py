"""
Ticket statistics.

A pure derived view over a ticket snapshot, recomputed on every call so
it can never drift from the repository.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from .entities import TicketCategory, TicketEntity, TicketPriority, TicketStatus, utc_now

RECENT_ACTIVITY_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class TicketStats:
    """
    Aggregated counters for the dashboard.

    Every status, priority and category appears in its breakdown, with
    zero when no ticket has it, so each breakdown sums to total.
    """

    total: int
    by_status: Dict[TicketStatus, int]
    by_priority: Dict[TicketPriority, int]
    by_category: Dict[TicketCategory, int]
    recent_activity: int
    average_resolution_time: Optional[timedelta] = None
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def open_count(self) -> int:
        return self.by_status[TicketStatus.OPEN]

    @property
    def resolved_count(self) -> int:
        return self.by_status[TicketStatus.RESOLVED]

    @property
    def average_resolution_hours(self) -> Optional[float]:
        if self.average_resolution_time is None:
            return None
        return round(self.average_resolution_time.total_seconds() / 3600, 2)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_status": {status.value: count for status, count in self.by_status.items()},
            "by_priority": {
                priority.value: count for priority, count in self.by_priority.items()
            },
            "by_category": {
                category.value: count for category, count in self.by_category.items()
            },
            "recent_activity": self.recent_activity,
            "average_resolution_hours": self.average_resolution_hours,
            "generated_at": self.generated_at.isoformat(),
        }


def compute_stats(
    tickets: Iterable[TicketEntity],
    now: Optional[datetime] = None,
    recent_window: timedelta = RECENT_ACTIVITY_WINDOW,
) -> TicketStats:
    """
    Aggregate a ticket snapshot.

    Args:
        tickets: Snapshot to aggregate
        now: Reference time for the recent activity window
        recent_window: Trailing window for recent activity (24 hours)

    Returns:
        TicketStats for the snapshot
    """
    moment = now or utc_now()
    since = moment - recent_window

    by_status = {status: 0 for status in TicketStatus}
    by_priority = {priority: 0 for priority in TicketPriority}
    by_category = {category: 0 for category in TicketCategory}
    total = 0
    recent = 0
    resolved_count = 0
    resolution_total = timedelta(0)

    for ticket in tickets:
        total += 1
        by_status[ticket.status] += 1
        by_priority[ticket.priority] += 1
        by_category[ticket.category] += 1

        if ticket.updated_at > since:
            recent += 1

        duration = ticket.resolution_duration
        if duration is not None:
            resolved_count += 1
            resolution_total += duration

    average = resolution_total / resolved_count if resolved_count else None

    return TicketStats(
        total=total,
        by_status=by_status,
        by_priority=by_priority,
        by_category=by_category,
        recent_activity=recent,
        average_resolution_time=average,
        generated_at=moment,
    )
