"""
In-memory ticket repository.

Implements the TicketRepository port from src/core/tickets/ports.py.

Concurrency model:
- Each ticket has its own FIFO lock; mutations of one ticket run one at
  a time, in the order they reached the lock
- Mutations of different tickets share no lock
- A short registry lock guards the id sequence and the ticket index
- Stored tickets are never changed in place: a mutation works on a
  copy and swaps it in only when the change succeeds, so reads can
  copy a consistent snapshot without taking any ticket lock
"""

from typing import Callable, Dict, List, Optional, Tuple, TypeVar
import copy
import logging
import re
import threading

from src.core.shared.exceptions import BusinessRuleViolationError, EntityNotFoundError
from src.core.tickets.entities import TicketEntity, format_ticket_id, ticket_id_sort_key

logger = logging.getLogger(__name__)

R = TypeVar("R")

_SEQUENTIAL_ID = re.compile(r"^TK-(\d+)$")


class FifoLock:
    """
    Lock that grants access in arrival order.

    threading.Lock gives no ordering guarantee between waiters; this
    one hands out a number on arrival and serves numbers in sequence.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._next_number = 0
        self._serving = 0

    def acquire(self) -> None:
        with self._condition:
            number = self._next_number
            self._next_number += 1
            while number != self._serving:
                self._condition.wait()

    def release(self) -> None:
        with self._condition:
            self._serving += 1
            self._condition.notify_all()

    def __enter__(self) -> "FifoLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


class InMemoryTicketRepository:
    """
    Thread-safe in-memory implementation of TicketRepository.

    Example:
        repo = InMemoryTicketRepository()
        ticket_id = repo.next_id()  # TK-001
        repo.add(TicketEntity.create(ticket_id=ticket_id, ...))

        ticket, edge = repo.mutate(
            ticket_id,
            lambda t: workflow.transition(t, TicketStatus.IN_PROGRESS),
        )
    """

    def __init__(self, first_number: int = 1):
        self._tickets: Dict[str, TicketEntity] = {}
        self._locks: Dict[str, FifoLock] = {}
        self._registry_lock = threading.Lock()
        self._next_number = first_number

    def next_id(self) -> str:
        with self._registry_lock:
            while format_ticket_id(self._next_number) in self._tickets:
                self._next_number += 1
            ticket_id = format_ticket_id(self._next_number)
            self._next_number += 1
        logger.debug(f"Reserved ticket id {ticket_id}")
        return ticket_id

    def add(self, ticket: TicketEntity) -> None:
        stored = copy.deepcopy(ticket)
        with self._registry_lock:
            if ticket.id in self._tickets:
                raise BusinessRuleViolationError(
                    f"Ticket {ticket.id} already exists",
                    rule="unique_ticket_id",
                )
            self._tickets[ticket.id] = stored
            self._locks[ticket.id] = FifoLock()

            # Keep the sequence ahead of ids added from outside (fixtures)
            match = _SEQUENTIAL_ID.match(ticket.id)
            if match and int(match.group(1)) >= self._next_number:
                self._next_number = int(match.group(1)) + 1

        logger.debug(f"Ticket added: {ticket.id}")

    def get(self, ticket_id: str) -> Optional[TicketEntity]:
        with self._registry_lock:
            ticket = self._tickets.get(ticket_id)
        if ticket is None:
            return None
        return copy.deepcopy(ticket)

    def list_all(self) -> List[TicketEntity]:
        with self._registry_lock:
            tickets = list(self._tickets.values())
        snapshot = copy.deepcopy(tickets)
        snapshot.sort(key=lambda ticket: ticket_id_sort_key(ticket.id))
        return snapshot

    def mutate(
        self,
        ticket_id: str,
        change: Callable[[TicketEntity], R],
    ) -> Tuple[TicketEntity, R]:
        lock = self._lock_for(ticket_id)
        with lock:
            with self._registry_lock:
                current = self._tickets.get(ticket_id)
            if current is None:
                # Deleted while this mutation waited for the lock
                raise self._not_found(ticket_id)

            working = copy.deepcopy(current)
            result = change(working)

            with self._registry_lock:
                if ticket_id not in self._tickets:
                    raise self._not_found(ticket_id)
                self._tickets[ticket_id] = working

            logger.debug(f"Ticket mutated: {ticket_id}")
            return copy.deepcopy((working, result))

    def delete(self, ticket_id: str) -> TicketEntity:
        lock = self._lock_for(ticket_id)
        with lock:
            with self._registry_lock:
                ticket = self._tickets.pop(ticket_id, None)
                self._locks.pop(ticket_id, None)
            if ticket is None:
                raise self._not_found(ticket_id)

        logger.debug(f"Ticket deleted: {ticket_id}")
        return ticket

    def exists(self, ticket_id: str) -> bool:
        with self._registry_lock:
            return ticket_id in self._tickets

    def count(self) -> int:
        with self._registry_lock:
            return len(self._tickets)

    def clear(self) -> None:
        """Remove every ticket (for tests and demo reloads)."""
        with self._registry_lock:
            self._tickets.clear()
            self._locks.clear()

    def _lock_for(self, ticket_id: str) -> FifoLock:
        with self._registry_lock:
            lock = self._locks.get(ticket_id)
        if lock is None:
            raise self._not_found(ticket_id)
        return lock

    @staticmethod
    def _not_found(ticket_id: str) -> EntityNotFoundError:
        return EntityNotFoundError(
            f"Ticket {ticket_id} not found",
            entity_type="Ticket",
            entity_id=ticket_id,
        )
