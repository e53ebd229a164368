"""
pytest configuration for the Django adapter tests.

Configures:
- Minimal Django settings (no database, JSON API only)
- A fresh DI container per test, backed by the in-memory publisher
"""

import pytest


TEST_TICKETS_SETTINGS = {
    'MAX_FILE_SIZE': 10 * 1024 * 1024,
    'MAX_TICKET_ATTACHMENTS': 5,
    'MAX_COMMENT_ATTACHMENTS': 3,
    'DEFAULT_PAGE_SIZE': 10,
    'MAX_PAGE_SIZE': 100,
    'RECENT_ACTIVITY_HOURS': 24,
    'SEED_DEMO_DATA': False,
    'STORAGE_LATENCY': 0.0,
    'EVENT_PUBLISHER_MODE': 'memory',
}


def pytest_configure(config):
    """Configure Django before the tests are collected."""
    import django
    from django.conf import settings

    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY='test-secret-key',
            ALLOWED_HOSTS=['testserver'],
            DATABASES={},
            INSTALLED_APPS=[
                'src.adapters.django_app.tickets',
            ],
            MIDDLEWARE=[
                'django.middleware.common.CommonMiddleware',
            ],
            ROOT_URLCONF='src.config.urls',
            USE_TZ=True,
            TIME_ZONE='UTC',
            TICKETS=TEST_TICKETS_SETTINGS,
        )
    django.setup()


@pytest.fixture
def container():
    """Fresh global container for each test."""
    from src.config.container import get_container, reset_container

    reset_container()
    yield get_container()
    reset_container()


@pytest.fixture
def seeded_container(container):
    from src.adapters.memory.fixtures import seed_demo_data

    seed_demo_data(container.ticket_repository())
    return container


@pytest.fixture
def client():
    from django.test import Client

    return Client()
