"""
Configuration of the Helpdesk tickets service.

Modules:
- settings: Django settings
- urls: Root URL routes
- celery: Celery app for asynchronous tasks
- container: Dependency Injection Container
"""

# Load the Celery app together with Django
from .celery import app as celery_app

__all__ = ('celery_app',)
