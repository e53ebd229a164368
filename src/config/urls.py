"""
Root URL configuration.

Layout:
- /tickets/api/ - Tickets JSON API
- /health/ - Health check
"""

from django.http import JsonResponse
from django.urls import path, include


def health(request):
    return JsonResponse({'status': 'ok'})


urlpatterns = [
    path('tickets/api/', include('src.adapters.django_app.tickets.urls')),
    path('health/', health, name='health'),
]
