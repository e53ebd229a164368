"""
Django app configuration for Tickets.
"""

from django.apps import AppConfig


class TicketsConfig(AppConfig):
    """Tickets app (JSON API only, no models)."""

    name = 'src.adapters.django_app.tickets'
    label = 'tickets'
    verbose_name = 'Ticket Management'
