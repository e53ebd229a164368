"""
Status workflow of a ticket.

The transition table below is the single source of truth for which
status changes are legal and which action label triggers each one.
Every caller (use cases, API, UI action lists) derives its options
from it.

State flow:
    OPEN ──────────────► IN_PROGRESS ◄──────► WAITING_FOR_CUSTOMER
      │                      │                        │
      └──────────────► RESOLVED ◄─────────────────────┘
                          │  ▲
                          ▼  │ (reopen goes back to OPEN)
                        CLOSED ───► OPEN

Side effects:
    entering RESOLVED stamps resolved_at the first time only
    entering CLOSED stamps closed_at
    reopening never clears earlier timestamps
    every transition refreshes updated_at
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
import logging

from src.core.shared.exceptions import InvalidTransitionError

from .entities import TicketEntity, TicketStatus, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    """
    A legal outgoing edge of a status, with the action that triggers it.

    Attributes:
        source: Current status
        target: Status after the transition
        label: Action label offered to the caller ("Mark Resolved")
    """

    source: TicketStatus
    target: TicketStatus
    label: str

    def to_dict(self) -> dict:
        return {
            "from": self.source.value,
            "to": self.target.value,
            "label": self.label,
        }


TRANSITIONS: Tuple[StatusTransition, ...] = (
    StatusTransition(TicketStatus.OPEN, TicketStatus.IN_PROGRESS, "Mark In Progress"),
    StatusTransition(TicketStatus.OPEN, TicketStatus.RESOLVED, "Mark Resolved"),
    StatusTransition(TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, "Mark Resolved"),
    StatusTransition(
        TicketStatus.IN_PROGRESS, TicketStatus.WAITING_FOR_CUSTOMER, "Waiting for Customer"
    ),
    StatusTransition(
        TicketStatus.WAITING_FOR_CUSTOMER, TicketStatus.IN_PROGRESS, "Resume Progress"
    ),
    StatusTransition(TicketStatus.WAITING_FOR_CUSTOMER, TicketStatus.RESOLVED, "Mark Resolved"),
    StatusTransition(TicketStatus.RESOLVED, TicketStatus.CLOSED, "Close Ticket"),
    StatusTransition(TicketStatus.RESOLVED, TicketStatus.OPEN, "Reopen"),
    StatusTransition(TicketStatus.CLOSED, TicketStatus.OPEN, "Reopen"),
)

INITIAL_STATUS = TicketStatus.OPEN


def _build_index() -> Dict[TicketStatus, List[StatusTransition]]:
    index: Dict[TicketStatus, List[StatusTransition]] = {status: [] for status in TicketStatus}
    for transition in TRANSITIONS:
        index[transition.source].append(transition)
    return index


_OUTGOING = _build_index()


def available_transitions(status: TicketStatus) -> List[StatusTransition]:
    """
    Outgoing edges of a status, in table order.

    Args:
        status: Current status

    Returns:
        The transitions a caller may offer for this status
    """
    return list(_OUTGOING[status])


def allowed_targets(status: TicketStatus) -> List[TicketStatus]:
    return [transition.target for transition in _OUTGOING[status]]


def find_transition(
    current: TicketStatus,
    target: TicketStatus,
) -> Optional[StatusTransition]:
    for transition in _OUTGOING[current]:
        if transition.target == target:
            return transition
    return None


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return find_transition(current, target) is not None


def reachable_statuses(start: TicketStatus = INITIAL_STATUS) -> Set[TicketStatus]:
    """Every status reachable from start by following table edges."""
    seen = {start}
    frontier = [start]
    while frontier:
        status = frontier.pop()
        for target in allowed_targets(status):
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    return seen


def transition(
    ticket: TicketEntity,
    target: TicketStatus,
    now: Optional[datetime] = None,
) -> StatusTransition:
    """
    Move a ticket to a new status, applying the transition side effects.

    The ticket is only modified when the move is legal; an illegal move
    leaves it untouched.

    Args:
        ticket: Ticket to transition
        target: Requested status
        now: Transition time (defaults to the current UTC time)

    Returns:
        The edge that was followed

    Raises:
        InvalidTransitionError: If target is not an outgoing edge of the
            current status (no clamping, no silent no-op)
    """
    edge = find_transition(ticket.status, target)
    if edge is None:
        raise InvalidTransitionError(
            current=ticket.status.value,
            target=target.value,
            allowed=[status.value for status in allowed_targets(ticket.status)],
        )

    moment = now or utc_now()
    ticket.status = target

    if target == TicketStatus.RESOLVED and ticket.resolved_at is None:
        # First resolution wins; later cycles keep the original stamp.
        ticket.resolved_at = moment
        ticket.actual_resolution_time = moment - ticket.created_at
    elif target == TicketStatus.CLOSED:
        ticket.closed_at = moment

    ticket.touch(moment)

    logger.debug(
        f"Ticket {ticket.id}: {edge.source.value} -> {edge.target.value} ({edge.label})"
    )
    return edge
