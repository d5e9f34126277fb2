"""
Usage Service - monthly plan quotas for check-ins, blog posts and technicians.
"""

import logging
from typing import Dict, Any, Optional

from rankitpro.models.company import Company
from rankitpro.service.check_in_service import CheckInServiceSingleton
from rankitpro.service.blog_post_service import BlogPostServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.utils.constants import PLAN_LIMITS
from rankitpro.utils.dates import month_bounds

logger = logging.getLogger(__name__)


def plan_limits(plan: Optional[str]) -> Dict[str, int]:
    return PLAN_LIMITS.get(plan or 'starter', PLAN_LIMITS['starter'])


def _entry(used: int, limit: int) -> Dict[str, Any]:
    return {
        'used': used,
        'limit': limit,
        'percentage': min(100, round(used / limit * 100)) if limit else 0,
    }


def get_usage(company: Company) -> Dict[str, Any]:
    """Current month usage against the company plan."""
    start, end = month_bounds()
    limits = plan_limits(company.plan)

    checkins = CheckInServiceSingleton.get_instance().count_between(company.id, start, end)
    blog_posts = BlogPostServiceSingleton.get_instance().count_between(company.id, start, end)
    technicians = TechnicianServiceSingleton.get_instance().count_active(company.id)

    return {
        'plan': company.plan,
        'usage': {
            'checkins': _entry(checkins, limits['checkins']),
            'blogPosts': _entry(blog_posts, limits['blogPosts']),
            'technicians': _entry(technicians, limits['technicians']),
        },
    }


def check_limit(company: Company, resource: str) -> Optional[Dict[str, Any]]:
    """
    Return an error body when ``resource`` is at its plan limit, else None.

    ``resource`` is one of ``checkins``, ``blogPosts`` or ``technicians``.
    """
    usage = get_usage(company)['usage'][resource]
    if usage['used'] >= usage['limit']:
        logger.info(f"Company {company.id} reached its {resource} limit ({usage['limit']})")
        return {
            'error': 'limit_reached',
            'message': f"Your {company.plan} plan allows {usage['limit']} {resource}. Upgrade to add more.",
            'resource': resource,
            'used': usage['used'],
            'limit': usage['limit'],
            'upgradeRequired': True,
        }
    return None
