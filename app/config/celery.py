"""
Celery configuration for the chat backend.

Celery runs the out-of-band maintenance work of the chat app:
- Rebuilding unread counters from message history (reconciliation)
- Purging expired typing indicators (periodic, see CELERY_BEAT_SCHEDULE)

Tasks are auto-discovered from all installed Django apps.

Usage:
    from chat.tasks import reconcile_unread_counts

    reconcile_unread_counts.delay(conversation_id)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
