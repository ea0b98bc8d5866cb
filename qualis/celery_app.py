from celery import Celery

from qualis.config import settings

celery_app = Celery(
    "qualis",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["qualis.tasks.notifications"],
)
celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    timezone="UTC",
    beat_schedule={
        "send-queued-emails": {
            "task": "qualis.tasks.notifications.send_queued_emails",
            "schedule": 60.0,
        },
    },
)
