"""
Global pytest configuration for the Helpdesk tickets service.

Loaded automatically by pytest; provides shared fixtures and markers.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.adapters.events.publishers import InMemoryEventPublisher
from src.adapters.memory.repository import InMemoryTicketRepository
from src.adapters.memory.storage import InMemoryAttachmentStorage
from src.adapters.memory.unit_of_work import InMemoryUnitOfWork
from src.core.tickets.attachments import AttachmentPolicy, AttachmentValidator
from src.core.tickets.dtos import FileUploadDTO


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def uow(publisher):
    return InMemoryUnitOfWork(event_publisher=publisher)


@pytest.fixture
def storage():
    return InMemoryAttachmentStorage()


@pytest.fixture
def validator():
    return AttachmentValidator(AttachmentPolicy())


@pytest.fixture
def make_upload():
    """Factory for FileUploadDTO with sensible defaults."""

    def _make(file_name="screenshot.png", size=1024, content_type="image/png", content=None):
        return FileUploadDTO(
            file_name=file_name,
            size=size,
            content_type=content_type,
            content=content,
        )

    return _make


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")

    for item in items:
        if "integration" in item.keywords:
            if not config.getoption("--run-integration", default=False):
                item.add_marker(skip_integration)


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )
