import logging
from typing import Any, Dict, Optional

from rankitpro.scheduler.celery_app import celery
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.review_request_service import ReviewRequestServiceSingleton
from rankitpro.service.sales_service import SalesServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.trial_service import expire_trials
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import DEFAULT_REVIEW_SETTINGS
from rankitpro.utils.dates import previous_month

logger = logging.getLogger(__name__)


def _app_context():
    # email templates render through Flask
    from rankitpro.application import create_app
    return create_app().app_context()


def run_review_follow_ups() -> Dict[str, Any]:
    company_service = CompanyServiceSingleton.get_instance()
    review_service = ReviewRequestServiceSingleton.get_instance()
    technician_service = TechnicianServiceSingleton.get_instance()

    sent = 0
    failed = 0
    for company in company_service.get_all():
        settings = {**DEFAULT_REVIEW_SETTINGS, **(company.review_settings or {})}
        if not settings.get('followUpEnabled'):
            continue

        due = review_service.get_due_follow_ups(
            company.id, int(settings['followUpDelayDays']), int(settings['maxFollowUps'])
        )
        for request in due:
            technician = technician_service.get_by_id(request.technician_id) if request.technician_id else None
            try:
                if review_service.send_follow_up(
                    request, company, technician, settings.get('includeTechnicianName', True)
                ):
                    sent += 1
                else:
                    failed += 1
            except Exception as e:
                logger.error(f"Follow-up for review request {request.id} failed: {e}")
                failed += 1

    logger.info("Review follow-ups: %d sent, %d failed.", sent, failed)
    return {"sent": sent, "failed": failed}


def run_trial_expiry() -> Dict[str, Any]:
    expired = expire_trials()
    email_service = EmailServiceSingleton.get_instance()
    user_service = UserServiceSingleton.get_instance()

    notified = 0
    for company in expired:
        for admin in user_service.get_company_admins(company.id):
            if not admin.active or not admin.email:
                continue
            try:
                if email_service.send_trial_expired_email(admin.email, company.name):
                    notified += 1
            except Exception as e:
                logger.error(f"Trial expiry email to {admin.email} failed: {e}")

    logger.info("Trial expiry: %d companies expired, %d admins notified.", len(expired), notified)
    return {"expired": [c.id for c in expired], "notified": notified}


def run_monthly_commissions(month: Optional[str] = None) -> Dict[str, Any]:
    month = month or previous_month()
    created = SalesServiceSingleton.get_instance().calculate_monthly_commissions(month)
    return {"month": month, "created": len(created)}


@celery.task
def process_review_follow_ups() -> Dict[str, Any]:
    """Send the next reminder for unanswered review requests."""
    with _app_context():
        return run_review_follow_ups()


@celery.task
def expire_trials_task() -> Dict[str, Any]:
    with _app_context():
        return run_trial_expiry()


@celery.task
def calculate_monthly_commissions_task(month: Optional[str] = None) -> Dict[str, Any]:
    """Renewal commissions for ``month`` (defaults to the previous month)."""
    return run_monthly_commissions(month)
