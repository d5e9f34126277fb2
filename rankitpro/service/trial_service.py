"""
Trial Service - free trial status and expiry for companies.
"""

import logging
import math
from typing import Dict, Any, List

from rankitpro.models.company import Company
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.utils.dates import utcnow, parse_datetime

logger = logging.getLogger(__name__)


def get_trial_status(company: Company) -> Dict[str, Any]:
    """
    Describe the company's access state.

    Paying companies return ``{"subscribed": True}``; otherwise the trial
    end date, whole days left (rounded up) and whether it has expired.
    """
    if company.has_subscription:
        return {'subscribed': True, 'expired': False}

    trial_end = parse_datetime(company.trial_end_date)
    if not trial_end:
        return {'subscribed': False, 'expired': True, 'daysLeft': 0, 'trialEndDate': None}

    seconds_left = (trial_end - utcnow()).total_seconds()
    expired = seconds_left <= 0 or company.is_trial_active is False
    return {
        'subscribed': False,
        'expired': expired,
        'daysLeft': 0 if expired else math.ceil(seconds_left / 86400),
        'trialEndDate': trial_end.isoformat(),
    }


def mark_trial_expired(company: Company) -> None:
    if company.is_trial_active:
        CompanyServiceSingleton.get_instance().update(company.id, {'is_trial_active': False})
        logger.info(f"Trial expired for company {company.id}")


def expire_trials() -> List[Company]:
    """Mark every unpaid company past its trial end; returns the companies changed."""
    expired = []
    company_service = CompanyServiceSingleton.get_instance()
    for company in company_service.get_all():
        if company.has_subscription or not company.is_trial_active:
            continue
        if get_trial_status(company)['expired']:
            mark_trial_expired(company)
            expired.append(company)
    return expired
