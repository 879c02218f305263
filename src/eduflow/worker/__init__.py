"""Background worker: Celery app and workflow tasks."""
from eduflow.worker.celery_app import celery_app

__all__ = ["celery_app"]
