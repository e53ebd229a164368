"""
Celery configuration for asynchronous processing.

Celery is used for:
- Handling ticket domain events off the request path
- Notifications to customers and the support team
- The scheduled daily statistics report

Architecture:
- Broker: RabbitMQ (messages between Django and workers)
- Backend: Redis (task results)
- Workers: processes that run the tasks

Usage:
    # Start a worker
    celery -A src.config.celery worker -l INFO

    # Start beat (scheduled tasks)
    celery -A src.config.celery beat -l INFO
"""

import os
from celery import Celery
from celery.schedules import crontab
from kombu import Queue, Exchange

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'src.config.settings')

app = Celery('tickets')

# Picks up the CELERY_* Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    timezone='UTC',
    enable_utc=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_default_retry_delay=60,
    task_max_retries=3,

    result_expires=3600,

    worker_send_task_events=True,
    task_send_sent_event=True,
)

app.conf.task_queues = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('events', Exchange('events'), routing_key='events.#'),
    Queue('notifications', Exchange('notifications'), routing_key='notifications.#'),
    Queue('reports', Exchange('reports'), routing_key='reports.#'),
)
app.conf.task_default_queue = 'default'

app.conf.task_routes = {
    'src.adapters.events.handlers.notify_*': {'queue': 'notifications'},
    'src.adapters.events.handlers.generate_daily_report': {'queue': 'reports'},
    'src.adapters.events.handlers.*': {'queue': 'events'},
}

app.autodiscover_tasks(['src.adapters.events'], related_name='handlers')

app.conf.beat_schedule = {
    # Daily report at 08:00
    'daily-report': {
        'task': 'src.adapters.events.handlers.generate_daily_report',
        'schedule': crontab(hour=8, minute=0),
    },
}
