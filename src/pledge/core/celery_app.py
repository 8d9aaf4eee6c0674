"""Celery application configuration.

Provides task queue infrastructure with Redis broker for:
- Purchase ingestion (high priority)
- Cache/chain resync (normal priority)
- Background operations
"""

from celery import Celery
from kombu import Exchange, Queue

from pledge.core.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "pledge",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "pledge.tasks.purchase_tasks",
        "pledge.tasks.resync_tasks",
    ],
)

# Define exchanges
default_exchange = Exchange("default", type="direct")
priority_exchange = Exchange("priority", type="direct")

# Priority: high (5) > normal (0) > low (-5)
celery_app.conf.task_queues = (
    # High: purchase reconciliation
    Queue(
        "high",
        exchange=priority_exchange,
        routing_key="high",
        queue_arguments={"x-max-priority": 5},
    ),
    # Normal: resync of single campaigns
    Queue(
        "normal",
        exchange=default_exchange,
        routing_key="normal",
        queue_arguments={"x-max-priority": 0},
    ),
    # Low: periodic sweeps
    Queue(
        "low",
        exchange=default_exchange,
        routing_key="low",
        queue_arguments={"x-max-priority": -5},
    ),
)

# Default queue
celery_app.conf.task_default_queue = "normal"
celery_app.conf.task_default_exchange = "default"
celery_app.conf.task_default_routing_key = "normal"

# Task routing
celery_app.conf.task_routes = {
    "pledge.tasks.purchase_tasks.*": {"queue": "high"},
    "pledge.tasks.resync_tasks.resync_campaign": {"queue": "normal"},
    "pledge.tasks.resync_tasks.resync_all_campaigns": {"queue": "low"},
}

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,  # Acknowledge after task completes
    task_reject_on_worker_lost=True,  # Requeue if worker dies
    task_track_started=True,

    # Result backend
    result_expires=86400,

    # Worker configuration
    worker_prefetch_multiplier=1,  # Chain calls are slow; don't hoard
    worker_max_tasks_per_child=1000,

    # Retry configuration
    task_default_retry_delay=60,
    task_max_retries=3,

    # Logging
    worker_hijack_root_logger=False,

    # Broker settings
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # Beat scheduler
    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename=".celery-beat-schedule",
)

# Celery Beat schedule (periodic tasks)
celery_app.conf.beat_schedule = {
    # Report sold_count / num_copies drift; repairs only when enabled
    "resync-all-campaigns": {
        "task": "pledge.tasks.resync_tasks.resync_all_campaigns",
        "schedule": settings.resync_interval_seconds,
        "kwargs": {"apply": settings.resync_apply_on_schedule},
        "options": {"queue": "low"},
    },
}
