"""
Celery configuration for background tasks.
"""

from celery import Celery

from dompet.core.config import settings

# Create Celery instance
celery_app = Celery(
    "dompet",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["dompet.tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task routing
    task_routes={
        "dompet.tasks.expire_subscriptions": {"queue": "maintenance"},
        "dompet.tasks.renew_subscriptions": {"queue": "maintenance"},
    },
    # Task time limits
    task_time_limit=600,
    task_soft_time_limit=540,
    # Result backend settings
    result_expires=86400,  # Results expire after 24 hours
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

celery_app.conf.beat_schedule = {}

# The sweep only tidies stored statuses; access checks never depend on it
if settings.SUBSCRIPTION_SWEEP_ENABLED:
    celery_app.conf.beat_schedule["expire-subscriptions"] = {
        "task": "dompet.tasks.expire_subscriptions",
        "schedule": float(settings.SUBSCRIPTION_SWEEP_INTERVAL_SECONDS),
    }

if settings.SUBSCRIPTION_RENEWAL_ENABLED:
    celery_app.conf.beat_schedule["renew-subscriptions"] = {
        "task": "dompet.tasks.renew_subscriptions",
        "schedule": float(settings.SUBSCRIPTION_SWEEP_INTERVAL_SECONDS),
    }
