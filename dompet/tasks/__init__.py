"""
Celery tasks for periodic maintenance.

These tasks are scheduled by Celery beat and executed by Celery workers.
"""

from dompet.tasks.subscriptions import expire_subscriptions_task, renew_subscriptions_task

__all__ = [
    "expire_subscriptions_task",
    "renew_subscriptions_task",
]
