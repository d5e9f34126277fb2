"""
Subscription Check Middleware - blocks companies whose free trial ended without a subscription.
"""

import logging
from functools import wraps
from flask import jsonify, g, after_this_request

from rankitpro.middleware.auth import require_auth
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.trial_service import get_trial_status, mark_trial_expired
from rankitpro.utils.constants import Roles

logger = logging.getLogger(__name__)


def require_active_subscription(f):
    """
    Decorator to enforce a paid subscription or a live trial.

    Super admins and subscribed companies pass. During a trial the response
    carries X-Trial-Days-Left and X-Trial-End-Date headers. Returns 403
    ``trial_expired`` once the trial is over.
    """
    @wraps(f)
    @require_auth
    def decorated(*args, **kwargs):
        user = g.user
        if user.role == Roles.SUPER_ADMIN or not user.company_id:
            return f(*args, **kwargs)

        try:
            company = CompanyServiceSingleton.get_instance().get_by_id(user.company_id)
        except Exception as e:
            logger.error(f"Error checking subscription status: {e}")
            return jsonify({"error": "Unable to verify subscription status"}), 500

        if not company:
            return jsonify({"error": "Company not found"}), 404

        g.company = company
        status = get_trial_status(company)
        if status.get('subscribed'):
            return f(*args, **kwargs)

        if status['expired']:
            mark_trial_expired(company)
            logger.info(f"Trial expired for company {company.id} - access denied")
            return jsonify({
                "error": "trial_expired",
                "message": "Your free trial has ended. Please choose a plan to continue.",
                "trialExpired": True,
                "upgradeRequired": True,
                "trialEndDate": status.get('trialEndDate'),
            }), 403

        @after_this_request
        def add_trial_headers(response):
            response.headers['X-Trial-Days-Left'] = str(status['daysLeft'])
            response.headers['X-Trial-End-Date'] = status['trialEndDate']
            return response

        return f(*args, **kwargs)

    return decorated
