"""
Celery application configuration for Rank It Pro.
Runs review follow-ups, trial expiry and monthly commissions on a schedule.
"""
from celery import Celery
from celery.schedules import crontab
import os

redis_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
celery = Celery(
    'tasks',
    broker=redis_url,
    backend=redis_url,
    include=['rankitpro.scheduler.tasks'],
)

celery.conf.beat_schedule = {
    'hourly_review_follow_ups': {
        'task': 'rankitpro.scheduler.tasks.process_review_follow_ups',
        'schedule': crontab(minute=0),
    },
    'daily_expire_trials': {
        'task': 'rankitpro.scheduler.tasks.expire_trials_task',
        'schedule': crontab(hour=0, minute=30),
    },
    # Runs on the 1st for the month that just ended
    'monthly_commissions': {
        'task': 'rankitpro.scheduler.tasks.calculate_monthly_commissions_task',
        'schedule': crontab(hour=2, minute=0, day_of_month=1),
    },
}

celery.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
