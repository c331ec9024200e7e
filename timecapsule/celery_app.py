from celery import Celery
from celery.schedules import crontab

from timecapsule.config import load_settings

settings = load_settings()

app = Celery('timecapsule', broker=settings.broker_url, backend=settings.broker_url, include=['timecapsule.tasks'])
app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)

app.conf.beat_schedule = {
    'audit-orphaned-blobs-every-10-minutes': {
        'task': 'timecapsule.tasks.audit_orphaned_blobs',
        'schedule': crontab(minute='*/10'),
    },
}
