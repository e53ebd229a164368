"""
URL patterns of the Tickets JSON API (mounted under /tickets/api/).

- GET, POST /                               - Query / create
- GET /stats/                               - Statistics
- GET, PATCH, DELETE /<id>/                 - Get / update / delete
- POST /<id>/transition/                    - Change status
- GET /<id>/actions/                        - Available actions
- POST /<id>/comments/                      - Add comment
- POST /<id>/attachments/                   - Upload attachment
- DELETE /<id>/attachments/<attachment_id>/ - Delete attachment
"""

from django.urls import path
from . import api_views

app_name = 'tickets'

urlpatterns = [
    path('', api_views.TicketAPIListView.as_view(), name='api_list'),

    # Before <pk> so "stats" is not read as a ticket id
    path('stats/', api_views.TicketAPIStatsView.as_view(), name='api_stats'),

    path('<str:pk>/', api_views.TicketAPIDetailView.as_view(), name='api_detail'),
    path('<str:pk>/transition/', api_views.TicketAPITransitionView.as_view(), name='api_transition'),
    path('<str:pk>/actions/', api_views.TicketAPIActionsView.as_view(), name='api_actions'),
    path('<str:pk>/comments/', api_views.TicketAPICommentsView.as_view(), name='api_comments'),
    path(
        '<str:pk>/attachments/',
        api_views.TicketAPIAttachmentsView.as_view(),
        name='api_attachments',
    ),
    path(
        '<str:pk>/attachments/<str:attachment_id>/',
        api_views.TicketAPIAttachmentDetailView.as_view(),
        name='api_attachment_detail',
    ),
]
