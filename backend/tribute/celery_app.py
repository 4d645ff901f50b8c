"""
Celery application configuration.
"""
from celery import Celery
from tribute.core.config import settings

# Create Celery app
celery_app = Celery(
    "tribute",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

# Configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        'reconcile-pending-invalidations': {
            'task': 'tribute.workers.invalidation_worker.reconcile_pending_invalidations',
            'schedule': 60.0,
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(['tribute.workers'], related_name='invalidation_worker')
