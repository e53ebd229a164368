"""
Demo tickets for development environments.

Loaded into the repository when TICKETS_SEED_DEMO_DATA is enabled.
"""

from datetime import datetime, timedelta, timezone
from typing import List
import logging

from src.core.tickets.entities import (
    Attachment,
    Comment,
    CommentAuthorRole,
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)


def _at(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def demo_tickets() -> List[TicketEntity]:
    """Three tickets in different stages of the workflow."""
    email_issue = TicketEntity(
        id="TK-001",
        title="Email server configuration issues",
        description=(
            "Unable to send emails from Outlook. Getting authentication errors "
            "when trying to connect to the mail server."
        ),
        user_id="user-1",
        status=TicketStatus.IN_PROGRESS,
        priority=TicketPriority.HIGH,
        category=TicketCategory.SOFTWARE_SUPPORT,
        assignee_id="support-1",
        assignee_name="John Smith",
        created_at=_at("2024-01-10T09:00:00"),
        updated_at=_at("2024-01-10T14:30:00"),
        attachments=[
            Attachment(
                id="att-1",
                file_name="error-screenshot.png",
                file_size=245760,
                content_type="image/png",
                uploaded_at=_at("2024-01-10T09:05:00"),
                url="/uploads/error-screenshot.png",
            ),
        ],
        comments=[
            Comment(
                id="comment-1",
                ticket_id="TK-001",
                author_id="user-1",
                author_name="Jane Doe",
                author_role=CommentAuthorRole.CUSTOMER,
                body="This started happening after the Windows update yesterday.",
                is_internal=False,
                created_at=_at("2024-01-10T09:15:00"),
            ),
            Comment(
                id="comment-2",
                ticket_id="TK-001",
                author_id="support-1",
                author_name="John Smith",
                author_role=CommentAuthorRole.SUPPORT,
                body=(
                    "I can see the issue. Let me check the server configuration "
                    "and get back to you."
                ),
                is_internal=False,
                created_at=_at("2024-01-10T14:30:00"),
            ),
        ],
        tags=["email", "outlook", "authentication"],
        estimated_resolution_time=timedelta(hours=2),
    )

    printer_issue = TicketEntity(
        id="TK-002",
        title="Network printer not responding",
        description=(
            "The office printer (HP LaserJet Pro) is not responding to print jobs. "
            "All computers show it as offline."
        ),
        user_id="user-1",
        status=TicketStatus.OPEN,
        priority=TicketPriority.MEDIUM,
        category=TicketCategory.HARDWARE_PROBLEMS,
        created_at=_at("2024-01-08T11:30:00"),
        updated_at=_at("2024-01-08T11:30:00"),
        tags=["printer", "network", "hardware"],
    )

    created = _at("2024-01-05T16:45:00")
    resolved = _at("2024-01-06T10:20:00")
    phishing_report = TicketEntity(
        id="TK-003",
        title="Suspicious email received",
        description=(
            "Received a suspicious email that looks like phishing. Want to report it "
            "and get guidance on security best practices."
        ),
        user_id="user-1",
        status=TicketStatus.RESOLVED,
        priority=TicketPriority.HIGH,
        category=TicketCategory.SECURITY_CONCERNS,
        assignee_id="support-2",
        assignee_name="Sarah Johnson",
        created_at=created,
        updated_at=resolved,
        resolved_at=resolved,
        actual_resolution_time=resolved - created,
        comments=[
            Comment(
                id="comment-3",
                ticket_id="TK-003",
                author_id="support-2",
                author_name="Sarah Johnson",
                author_role=CommentAuthorRole.SUPPORT,
                body=(
                    "Thank you for reporting this. I've analyzed the email and confirmed "
                    "it's a phishing attempt. I've added the sender to our blocklist."
                ),
                is_internal=False,
                created_at=resolved,
            ),
        ],
        tags=["security", "phishing", "email"],
    )

    return [email_issue, printer_issue, phishing_report]


def seed_demo_data(repository) -> int:
    """
    Add the demo tickets that are not stored yet.

    Returns:
        Number of tickets added
    """
    added = 0
    for ticket in demo_tickets():
        if not repository.exists(ticket.id):
            repository.add(ticket)
            added += 1
    logger.info(f"Seeded {added} demo tickets")
    return added
