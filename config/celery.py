"""
Celery application for Oblivion.

Only the membership view refresh runs here; its schedule is
CELERY_BEAT_SCHEDULE in settings. Run logging lives in LoggedTask.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('oblivion')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
