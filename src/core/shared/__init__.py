"""
Shared Domain Components.

Components shared by every domain:
- Domain exceptions
- Interfaces (Ports)
- Base class for Domain Events
"""

from .exceptions import (
    DomainException,
    ValidationError,
    RejectionReason,
    AttachmentRejectedError,
    EntityNotFoundError,
    BusinessRuleViolationError,
    InvalidTransitionError,
    TransientFailureError,
)
from .events import DomainEvent
from .interfaces import UnitOfWork, EventPublisher

__all__ = [
    "DomainException",
    "ValidationError",
    "RejectionReason",
    "AttachmentRejectedError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "InvalidTransitionError",
    "TransientFailureError",
    "DomainEvent",
    "UnitOfWork",
    "EventPublisher",
]
