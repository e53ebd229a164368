"""
Attachment validation rules.

Pure checks on file metadata before a file joins a ticket or a comment.
Every rule is evaluated and reported together, so a caller can show all
problems at once:

- FILE_TOO_LARGE: size above the configured maximum (10 MiB default)
- UNSUPPORTED_TYPE: declared MIME type outside the allow-list
- TOO_MANY_ATTACHMENTS: the target would exceed its maximum count
- DUPLICATE_FILE: same (name, size) as a file already present

No side effects; the result depends only on the inputs and the policy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from src.core.shared.exceptions import AttachmentRejectedError, RejectionReason

from .entities import Attachment

MIB = 1024 * 1024

DEFAULT_ALLOWED_TYPES: FrozenSet[str] = frozenset({
    # Images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/csv",
    # Technical files
    "application/json",
    "application/xml",
})


class AttachmentTarget(Enum):
    """What a set of attachments hangs off."""

    TICKET = "ticket"
    COMMENT = "comment"


class RejectionCode:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    TOO_MANY_ATTACHMENTS = "TOO_MANY_ATTACHMENTS"
    DUPLICATE_FILE = "DUPLICATE_FILE"


@dataclass(frozen=True)
class AttachmentPolicy:
    """
    Attachment limits.

    Attributes:
        max_file_size: Maximum size per file in bytes
        max_ticket_attachments: Maximum files directly on a ticket
        max_comment_attachments: Maximum files on a single comment
        allowed_types: MIME allow-list
    """

    max_file_size: int = 10 * MIB
    max_ticket_attachments: int = 5
    max_comment_attachments: int = 3
    allowed_types: FrozenSet[str] = field(default=DEFAULT_ALLOWED_TYPES)

    def max_for(self, target: AttachmentTarget) -> int:
        if target == AttachmentTarget.COMMENT:
            return self.max_comment_attachments
        return self.max_ticket_attachments

    @classmethod
    def from_config(cls, config: Optional[dict]) -> "AttachmentPolicy":
        """
        Build a policy from a config mapping, falling back to defaults.

        Args:
            config: Mapping with any of max_file_size,
                max_ticket_attachments, max_comment_attachments,
                allowed_types

        Returns:
            AttachmentPolicy
        """
        config = config or {}
        defaults = cls()

        def value(key):
            raw = config.get(key)
            return getattr(defaults, key) if raw is None else int(raw)

        allowed = config.get("allowed_types")
        return cls(
            max_file_size=value("max_file_size"),
            max_ticket_attachments=value("max_ticket_attachments"),
            max_comment_attachments=value("max_comment_attachments"),
            allowed_types=defaults.allowed_types if allowed is None else frozenset(allowed),
        )


@dataclass(frozen=True)
class FileDescriptor:
    """
    Metadata of a candidate file, as declared by the caller.

    Attributes:
        file_name: Original file name
        size: Size in bytes
        content_type: Declared MIME type
    """

    file_name: str
    size: int
    content_type: str

    @property
    def identity_key(self) -> Tuple[str, int]:
        return (self.file_name, self.size)


@dataclass
class ValidationResult:
    """Outcome of validating a batch of candidates."""

    reasons: List[RejectionReason] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.reasons

    @property
    def codes(self) -> List[str]:
        return [reason.code for reason in self.reasons]

    def raise_if_rejected(self) -> None:
        """
        Raises:
            AttachmentRejectedError: Carrying every reason, if any
        """
        if self.reasons:
            raise AttachmentRejectedError(self.reasons)


def _format_size(size: int) -> str:
    return f"{round(size / MIB)}MB"


class AttachmentValidator:
    """
    Validates candidate files against the attachment policy.

    Example:
        validator = AttachmentValidator(AttachmentPolicy())
        result = validator.validate(
            [FileDescriptor("error.png", 245760, "image/png")],
            existing=ticket.attachments,
            target=AttachmentTarget.TICKET,
        )
        result.raise_if_rejected()
    """

    def __init__(self, policy: Optional[AttachmentPolicy] = None):
        self.policy = policy or AttachmentPolicy()

    def validate(
        self,
        candidates: Sequence[FileDescriptor],
        existing: Iterable[Attachment] = (),
        target: AttachmentTarget = AttachmentTarget.TICKET,
    ) -> ValidationResult:
        """
        Check a batch of candidates that would join an attachment set.

        Args:
            candidates: Files about to be attached
            existing: Attachments already on the target
            target: Ticket or comment (selects the count limit)

        Returns:
            ValidationResult listing every failed rule (empty if accepted)
        """
        existing = list(existing)
        reasons: List[RejectionReason] = []

        seen: Set[Tuple[str, int]] = {attachment.identity_key for attachment in existing}
        for candidate in candidates:
            reasons.extend(self._check_file(candidate))

            if candidate.identity_key in seen:
                reasons.append(RejectionReason(
                    code=RejectionCode.DUPLICATE_FILE,
                    message=f'File "{candidate.file_name}" is already attached.',
                    file_name=candidate.file_name,
                ))
            seen.add(candidate.identity_key)

        limit = self.policy.max_for(target)
        if len(existing) + len(candidates) > limit:
            reasons.append(RejectionReason(
                code=RejectionCode.TOO_MANY_ATTACHMENTS,
                message=f"Cannot attach more than {limit} files to a {target.value}.",
            ))

        return ValidationResult(reasons=reasons)

    def validate_one(
        self,
        candidate: FileDescriptor,
        existing: Iterable[Attachment] = (),
        target: AttachmentTarget = AttachmentTarget.TICKET,
    ) -> ValidationResult:
        return self.validate([candidate], existing, target)

    def _check_file(self, candidate: FileDescriptor) -> List[RejectionReason]:
        reasons = []

        if candidate.size > self.policy.max_file_size:
            reasons.append(RejectionReason(
                code=RejectionCode.FILE_TOO_LARGE,
                message=(
                    f'File "{candidate.file_name}" is too large. '
                    f"Maximum size is {_format_size(self.policy.max_file_size)}."
                ),
                file_name=candidate.file_name,
            ))

        if candidate.content_type not in self.policy.allowed_types:
            reasons.append(RejectionReason(
                code=RejectionCode.UNSUPPORTED_TYPE,
                message=(
                    f'File "{candidate.file_name}" has an unsupported format '
                    f"({candidate.content_type or 'unknown type'})."
                ),
                file_name=candidate.file_name,
            ))

        return reasons
