"""
Domain exceptions for the Helpdesk ticket core.

This module defines the domain-specific exceptions that let the layers
communicate failures in a clear, typed way.

Hierarchy:
    DomainException (base)
    ├── ValidationError (field-level input contract)
    ├── AttachmentRejectedError (one or more attachment rules failed)
    ├── EntityNotFoundError (ticket, comment or attachment does not exist)
    ├── BusinessRuleViolationError (business rule violated)
    │   └── InvalidTransitionError (status change not in the transition table)
    └── TransientFailureError (I/O failure, safe to retry)
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional


class DomainException(Exception):
    """
    Base exception for every domain error.

    Every domain-specific exception inherits from this class so a caller
    can catch any domain failure generically.

    Example:
        try:
            service.execute(input_dto)
        except DomainException as e:
            logger.error(f"Domain error: {e}")
    """

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """Serialize the exception to a dictionary (useful for APIs)."""
        return {
            "error": self.code,
            "message": self.message,
        }


class ValidationError(DomainException):
    """
    Input data does not satisfy a field-level contract.

    Raised for length limits on title, description and comment bodies,
    and for missing or unknown enum values. Never retried automatically.

    Example:
        if len(title) < 5:
            raise ValidationError("Title must be at least 5 characters long", field="title")
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


@dataclass(frozen=True)
class RejectionReason:
    """
    A single failed attachment rule.

    Attributes:
        code: Machine-readable rule identifier (e.g. FILE_TOO_LARGE)
        message: Human-readable explanation
        file_name: File the rule failed for (None for set-level rules)
    """

    code: str
    message: str
    file_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "file_name": self.file_name,
        }


class AttachmentRejectedError(DomainException):
    """
    One or more attachment rules failed.

    Carries every reason produced by the validator so the caller can
    report all problems at once instead of one at a time.

    Example:
        result = validator.validate(candidates, existing, AttachmentTarget.TICKET)
        if not result.accepted:
            raise AttachmentRejectedError(result.reasons)
    """

    def __init__(self, reasons: Iterable[RejectionReason]):
        self.reasons: List[RejectionReason] = list(reasons)
        summary = "; ".join(reason.message for reason in self.reasons)
        super().__init__(
            f"Attachment rejected: {summary}" if summary else "Attachment rejected",
            "ATTACHMENT_REJECTED",
        )

    @property
    def codes(self) -> List[str]:
        """Rule codes of every reason, in report order."""
        return [reason.code for reason in self.reasons]

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["reasons"] = [reason.to_dict() for reason in self.reasons]
        return result


class EntityNotFoundError(DomainException):
    """
    Entity not found in the repository.

    Raised when a lookup by id for a ticket, comment or attachment
    returns nothing.

    Example:
        ticket = repo.get(ticket_id)
        if ticket is None:
            raise EntityNotFoundError(f"Ticket {ticket_id} not found")
    """

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message, "ENTITY_NOT_FOUND")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.entity_type:
            result["entity_type"] = self.entity_type
        if self.entity_id:
            result["entity_id"] = self.entity_id
        return result


class BusinessRuleViolationError(DomainException):
    """
    Business rule violation.

    Raised when an operation breaks a rule established by the domain.

    Example:
        if attachment_belongs_to_comment:
            raise BusinessRuleViolationError(
                "Comment attachments cannot be deleted",
                rule="comment_attachments_immutable",
            )
    """

    def __init__(self, message: str, rule: Optional[str] = None, code: Optional[str] = None):
        self.rule = rule
        super().__init__(message, code or "BUSINESS_RULE_VIOLATION")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.rule:
            result["rule"] = self.rule
        return result


class InvalidTransitionError(BusinessRuleViolationError):
    """
    Requested status change is not an outgoing edge of the current state.

    Carries the legal targets so the caller can re-derive the action set
    instead of guessing.
    """

    def __init__(self, current: str, target: str, allowed: Iterable[str] = ()):
        self.current = current
        self.target = target
        self.allowed: List[str] = list(allowed)
        super().__init__(
            f"Transition from {current} to {target} is not allowed",
            rule="invalid_status_transition",
            code="INVALID_TRANSITION",
        )

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["current"] = self.current
        result["target"] = self.target
        result["allowed"] = self.allowed
        return result


class TransientFailureError(DomainException):
    """
    Simulated or real I/O failure (network, storage).

    Safe to retry. The core never retries on the caller's behalf.
    """

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message, "TRANSIENT_FAILURE")

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["retryable"] = self.retryable
        return result
