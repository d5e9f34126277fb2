"""
Analytics Service - dashboard statistics for companies, technicians and super admins.
"""

import logging
from datetime import timedelta
from typing import Dict, Any, Optional

from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.models.technician import Technician
from rankitpro.utils.constants import PLAN_PRICES, Roles
from rankitpro.utils.dates import utcnow, month_bounds, parse_datetime

logger = logging.getLogger(__name__)


def _percent_change(current: int, previous: int) -> int:
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def _count(rows, start, end=None) -> int:
    total = 0
    for row in rows:
        created = parse_datetime(row.get('created_at'))
        if created and created >= start and (end is None or created < end):
            total += 1
    return total


def get_company_stats(company_id: int) -> Dict[str, Any]:
    """
    Totals for a company plus 30-day trends.

    Trends compare the last 30 days against the 30 days before that.
    """
    supabase = SupabaseClientSingleton.get_instance()

    check_ins = (
        supabase.table('check_ins').select('id, created_at')
        .eq('company_id', company_id).eq('is_deleted', False).execute()
    ).data or []
    technicians = (
        supabase.table('technicians').select('id, active')
        .eq('company_id', company_id).execute()
    ).data or []
    blog_posts = (
        supabase.table('blog_posts').select('id, created_at')
        .eq('company_id', company_id).execute()
    ).data or []
    review_requests = (
        supabase.table('review_requests').select('id, created_at')
        .eq('company_id', company_id).execute()
    ).data or []
    responses = (
        supabase.table('review_responses').select('id, rating, created_at')
        .eq('company_id', company_id).execute()
    ).data or []

    now = utcnow()
    last_30 = now - timedelta(days=30)
    prev_30 = now - timedelta(days=60)
    ratings = [r['rating'] for r in responses if r.get('rating')]

    return {
        'totalCheckins': len(check_ins),
        'activeTechs': sum(1 for t in technicians if t.get('active')),
        'blogPosts': len(blog_posts),
        'reviewRequests': len(review_requests),
        'reviewResponses': len(responses),
        'averageRating': round(sum(ratings) / len(ratings), 1) if ratings else 0,
        'trends': {
            'checkinsChange': _percent_change(_count(check_ins, last_30), _count(check_ins, prev_30, last_30)),
            'postsChange': _percent_change(_count(blog_posts, last_30), _count(blog_posts, prev_30, last_30)),
            'reviewsChange': _percent_change(_count(responses, last_30), _count(responses, prev_30, last_30)),
        },
    }


def get_technician_dashboard(technician: Technician) -> Dict[str, Any]:
    supabase = SupabaseClientSingleton.get_instance()
    start, _ = month_bounds()

    check_ins = (
        supabase.table('check_ins').select('*')
        .eq('technician_id', technician.id).eq('is_deleted', False)
        .order('created_at', desc=True).execute()
    ).data or []
    responses = (
        supabase.table('review_responses').select('rating, feedback, customer_name, created_at')
        .eq('technician_id', technician.id).execute()
    ).data or []
    ratings = [r['rating'] for r in responses if r.get('rating')]

    return {
        'technician': technician.to_dict(),
        'checkinsThisMonth': _count(check_ins, start),
        'totalCheckins': len(check_ins),
        'reviews': len(responses),
        'averageRating': round(sum(ratings) / len(ratings), 1) if ratings else 0,
        'recentCheckins': check_ins[:5],
    }


def get_system_overview() -> Dict[str, Any]:
    """Super admin view across every company."""
    supabase = SupabaseClientSingleton.get_instance()
    now = utcnow()
    start, _ = month_bounds()

    companies = (supabase.table('companies').select('*').execute()).data or []
    users = (supabase.table('users').select('id, role, active').execute()).data or []
    check_ins = (supabase.table('check_ins').select('id, created_at').eq('is_deleted', False).execute()).data or []

    paying = [c for c in companies if c.get('stripe_subscription_id')]
    active_trials = [
        c for c in companies
        if not c.get('stripe_subscription_id')
        and c.get('is_trial_active')
        and (parse_datetime(c.get('trial_end_date')) or now) > now
    ]

    users_by_role = {role: 0 for role in Roles.ALL}
    for user in users:
        if user.get('role') in users_by_role:
            users_by_role[user['role']] += 1

    return {
        'companies': {
            'total': len(companies),
            'paying': len(paying),
            'activeTrials': len(active_trials),
        },
        'usersByRole': users_by_role,
        'totalUsers': len(users),
        'checkinsThisMonth': _count(check_ins, start),
        'totalCheckins': len(check_ins),
        'mrr': sum(PLAN_PRICES.get(c.get('plan'), 0) for c in paying),
    }


def get_dashboard_for_user(user, technician: Optional[Technician] = None) -> Dict[str, Any]:
    if user.role == Roles.SUPER_ADMIN:
        return {'role': user.role, 'overview': get_system_overview()}
    if user.role == Roles.TECHNICIAN and technician:
        return {'role': user.role, 'dashboard': get_technician_dashboard(technician)}
    if user.company_id:
        return {'role': user.role, 'stats': get_company_stats(user.company_id)}
    return {'role': user.role}
