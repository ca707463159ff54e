import logging

from celery import Celery

from cartqueue.config import load_settings

settings = load_settings()

app = Celery("cartqueue", broker=settings.celery_broker_url, include=["cartqueue.tasks"])

app.conf.task_default_queue = "cart_maintenance"

app.conf.beat_schedule = {
    "purge-deleted-cart-items": {
        "task": "purge_deleted_cart_items",
        "schedule": settings.purge_interval_seconds,
    },
}

app.conf.task_acks_late = True  # Task acknowledged after completion, not before
app.conf.worker_prefetch_multiplier = 1  # Workers fetch one task at a time

logger = logging.getLogger(__name__)
logger.setLevel(settings.log_level)
