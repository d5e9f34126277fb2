"""
Celery entry point.

    celery -A celery_worker.celery worker --loglevel=info
    celery -A celery_worker.celery beat --loglevel=info
"""
from dotenv import load_dotenv

load_dotenv()

from rankitpro.scheduler.celery_app import celery
from rankitpro.scheduler import tasks  # noqa: F401  registers tasks

__all__ = ["celery"]
