"""
Analytics API Routes.
"""

import logging

from flask import jsonify, g

from rankitpro.analytics import analytics_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, require_super_admin, resolve_company_id
from rankitpro.service import analytics_service
from rankitpro.service.technician_service import TechnicianServiceSingleton

logger = logging.getLogger(__name__)


@analytics_bp.route('/company', methods=['GET'])
@require_company_admin
def company_analytics():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify({"error": "company_id is required"}), 400

    try:
        return jsonify(analytics_service.get_company_stats(company_id))
    except Exception as e:
        logger.error(f"Error getting analytics for company {company_id}: {e}")
        return jsonify({"error": str(e)}), 500


@analytics_bp.route('/technician', methods=['GET'])
@require_auth
def technician_analytics():
    technician = TechnicianServiceSingleton.get_instance().get_by_user_id(g.user.id)
    if not technician:
        return jsonify({"error": "No technician profile linked to this account"}), 404

    try:
        return jsonify(analytics_service.get_technician_dashboard(technician))
    except Exception as e:
        logger.error(f"Error getting technician analytics for {technician.id}: {e}")
        return jsonify({"error": str(e)}), 500


@analytics_bp.route('/admin', methods=['GET'])
@require_super_admin
def admin_analytics():
    try:
        return jsonify(analytics_service.get_system_overview())
    except Exception as e:
        logger.error(f"Error getting system overview: {e}")
        return jsonify({"error": str(e)}), 500


@analytics_bp.route('/dashboard', methods=['GET'])
@require_auth
def dashboard():
    technician = TechnicianServiceSingleton.get_instance().get_by_user_id(g.user.id)
    try:
        return jsonify(analytics_service.get_dashboard_for_user(g.user, technician))
    except Exception as e:
        logger.error(f"Error building dashboard for user {g.user.id}: {e}")
        return jsonify({"error": str(e)}), 500
