"""
Ports (Interfaces) of the Tickets domain.

Contracts that infrastructure adapters implement for ticket storage and
for attachment blobs.

Ports:
- TicketRepository: Owner of the canonical ticket collection
- AttachmentStorage: Async, cancellable blob storage
- Clock: Source of the current time

Principle:
    The core defines the interfaces, adapters implement them.
    Dependencies always point to the core.

Example:
    # In an adapter
    class InMemoryTicketRepository:
        def get(self, ticket_id: str) -> Optional[TicketEntity]:
            ...
"""

from datetime import datetime
from typing import Callable, List, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from .dtos import FileUploadDTO
from .entities import TicketEntity

R = TypeVar("R")

Clock = Callable[[], datetime]


@runtime_checkable
class TicketRepository(Protocol):
    """
    Interface for ticket storage.

    Single source of truth for reads and mutations. Reads hand out
    snapshots; every write goes through add, mutate or delete so the
    implementation can serialize writes per ticket.

    Implementations:
    - InMemoryTicketRepository (per-ticket locks)

    Methods:
        next_id: Reserve the next sequential id
        add: Store a new ticket
        get: Snapshot of one ticket, or None
        list_all: Consistent snapshot of every ticket
        mutate: Apply a change to one ticket under its lock
        delete: Remove a ticket
        exists: Check whether an id is stored
        count: Number of stored tickets
    """

    def next_id(self) -> str:
        """
        Reserve the next sequential ticket id (TK-001, TK-002, ...).

        Ids are never reused, even after a delete.
        """
        ...

    def add(self, ticket: TicketEntity) -> None:
        """
        Store a newly created ticket.

        Raises:
            BusinessRuleViolationError: If the id is already taken
        """
        ...

    def get(self, ticket_id: str) -> Optional[TicketEntity]:
        """
        Returns:
            A copy of the ticket, or None if it does not exist
        """
        ...

    def list_all(self) -> List[TicketEntity]:
        """
        Returns:
            Copies of every ticket, ordered by id
        """
        ...

    def mutate(
        self,
        ticket_id: str,
        change: Callable[[TicketEntity], R],
    ) -> Tuple[TicketEntity, R]:
        """
        Apply a change to one ticket.

        Mutations of the same ticket run one at a time in the order they
        acquire the ticket; mutations of different tickets never wait on
        each other. If change raises, the stored ticket is left as it was.

        Args:
            ticket_id: Ticket to change
            change: Callable applied to a working copy of the ticket

        Returns:
            (copy of the updated ticket, value returned by change)

        Raises:
            EntityNotFoundError: If the ticket does not exist
        """
        ...

    def delete(self, ticket_id: str) -> TicketEntity:
        """
        Remove a ticket.

        Returns:
            The removed ticket

        Raises:
            EntityNotFoundError: If the ticket does not exist
        """
        ...

    def exists(self, ticket_id: str) -> bool:
        ...

    def count(self) -> int:
        ...


@runtime_checkable
class AttachmentStorage(Protocol):
    """
    Interface for attachment blobs.

    Both operations are coroutines so a caller can cancel an upload in
    flight. An implementation must leave nothing behind when store is
    cancelled.
    """

    async def store(self, ticket_id: str, upload: FileUploadDTO) -> str:
        """
        Store the content of an upload.

        Returns:
            Opaque handle (URL) of the stored blob

        Raises:
            TransientFailureError: On a retryable storage failure
        """
        ...

    async def discard(self, url: str) -> None:
        """Remove a stored blob; unknown handles are ignored."""
        ...
