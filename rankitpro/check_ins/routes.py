"""
Check-in API Routes.

A check-in is a technician's record of a service visit. Creating one can
also draft a blog post and ask the customer for a review.

- GET /api/check-ins - List the company's check-ins
- POST /api/check-ins - Record a visit
- GET/PATCH/DELETE /api/check-ins/<id>
- POST /api/check-ins/<id>/summary - AI summary of the visit
"""

import logging
from typing import Any, Dict, Optional

from flask import request, jsonify, g

from rankitpro.check_ins import check_ins_bp
from rankitpro.middleware.auth import require_auth, can_access_company, resolve_company_id, forbidden
from rankitpro.middleware.subscription_check import require_active_subscription
from rankitpro.models.check_in import CheckIn
from rankitpro.models.technician import Technician
from rankitpro.notifications.admin_notifier import AdminNotifier
from rankitpro.service import crm_sync_service
from rankitpro.service.blog_post_service import BlogPostServiceSingleton
from rankitpro.service.check_in_service import CheckInServiceSingleton, EDITABLE_FIELDS
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.content_service import ContentServiceSingleton
from rankitpro.service.review_request_service import ReviewRequestServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.usage_service import check_limit
from rankitpro.service.wordpress_service import publish_check_in, WordPressError
from rankitpro.utils.constants import Roles

logger = logging.getLogger(__name__)


def _editable_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept camelCase or snake_case keys and keep only editable columns."""
    fields = {}
    for key, value in data.items():
        name = CheckIn.snake_case(key)
        if name in EDITABLE_FIELDS:
            fields[name] = value
    return fields


def _load_check_in(check_in_id):
    check_in = CheckInServiceSingleton.get_instance().get_by_id(check_in_id)
    if not check_in:
        return None, (jsonify({"error": "Check-in not found"}), 404)
    if not can_access_company(g.user, check_in.company_id):
        return None, forbidden("Access denied to this check-in")
    if g.user.role == Roles.TECHNICIAN:
        own = TechnicianServiceSingleton.get_instance().get_by_user_id(g.user.id)
        if not own or own.id != check_in.technician_id:
            return None, forbidden("Technicians can only access their own check-ins")
    return check_in, None


def _technician_name(technician_id: Optional[int]) -> str:
    if not technician_id:
        return "Our technician"
    technician = TechnicianServiceSingleton.get_instance().get_by_id(technician_id)
    return technician.name if technician else "Our technician"


@check_ins_bp.route('', methods=['GET'])
@require_auth
def list_check_ins():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])

    limit = request.args.get('limit', type=int)
    technician_id = request.args.get('technician_id', type=int)

    technician_service = TechnicianServiceSingleton.get_instance()
    if g.user.role == Roles.TECHNICIAN:
        own = technician_service.get_by_user_id(g.user.id)
        if not own:
            return jsonify([])
        technician_id = own.id

    try:
        check_ins = CheckInServiceSingleton.get_instance().get_by_company(
            company_id, limit=limit, technician_id=technician_id
        )
        names = {t.id: t.name for t in technician_service.get_by_company(company_id, active_only=False)}
        return jsonify([
            {**c.to_dict(), 'technician_name': names.get(c.technician_id)}
            for c in check_ins
        ])
    except Exception as e:
        logger.error(f"Error listing check-ins: {e}")
        return jsonify({"error": str(e)}), 500


@check_ins_bp.route('', methods=['POST'])
@require_active_subscription
def create_check_in():
    data = request.get_json(silent=True) or {}
    fields = _editable_fields(data)

    if not (fields.get('job_type') or '').strip():
        return jsonify({"error": "Job type is required"}), 400

    technician_service = TechnicianServiceSingleton.get_instance()
    technician_id = data.get('technicianId') or data.get('technician_id')
    if technician_id:
        technician = technician_service.get_by_id(technician_id)
        if not technician:
            return jsonify({"error": "Technician not found"}), 404
    else:
        technician = technician_service.get_by_user_id(g.user.id)
        if not technician:
            return jsonify({"error": "technicianId is required"}), 400

    if not can_access_company(g.user, technician.company_id):
        return forbidden("Technician does not belong to your company")
    if g.user.role == Roles.TECHNICIAN and technician.user_id != g.user.id:
        return forbidden("Technicians can only record their own visits")

    company = g.get('company') or CompanyServiceSingleton.get_instance().get_by_id(technician.company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404

    limit_error = check_limit(company, 'checkins')
    if limit_error:
        return jsonify(limit_error), 403

    try:
        check_in = CheckIn.from_dict(fields)
        check_in.technician_id = technician.id
        check_in.company_id = company.id
        check_in = CheckInServiceSingleton.get_instance().create(check_in)
    except Exception as e:
        logger.error(f"Error creating check-in: {e}")
        return jsonify({"error": str(e)}), 500

    result = check_in.to_dict()
    notifier = AdminNotifier(company)
    notifier.notify_check_in(check_in, technician.name)

    if data.get('createBlogPost'):
        result['blogPost'] = _create_blog_post(check_in, technician, company, notifier)

    if data.get('sendReviewRequest'):
        result['reviewRequest'] = _send_review_request(check_in, technician, company)

    wp_config = company.wordpress_config or {}
    if wp_config.get('auto_publish') and wp_config.get('site_url') and wp_config.get('enabled', True):
        try:
            result['wordpress'] = publish_check_in(wp_config, check_in, technician.name)
        except WordPressError as e:
            logger.error(f"WordPress auto-publish failed for check-in {check_in.id}: {e}")

    if (company.features_enabled or {}).get('crmSync') and company.crm_integrations:
        result['crmSync'] = crm_sync_service.sync_check_in(company, check_in, technician.name)

    return jsonify(result), 201


def _create_blog_post(check_in: CheckIn, technician: Technician, company, notifier: AdminNotifier):
    if check_limit(company, 'blogPosts'):
        logger.info(f"Blog post for check-in {check_in.id} skipped: monthly limit reached")
        return None
    try:
        post = BlogPostServiceSingleton.get_instance().create_from_check_in(check_in, technician.name, company.name)
        notifier.notify_blog_post(post)
        return post.to_dict()
    except Exception as e:
        logger.error(f"Blog post generation failed for check-in {check_in.id}: {e}")
        return None


def _send_review_request(check_in: CheckIn, technician: Technician, company):
    """Email is preferred over SMS when the customer gave both."""
    if not check_in.customer_name or not (check_in.customer_email or check_in.customer_phone):
        logger.info(f"Check-in {check_in.id} has no customer contact; review request skipped")
        return None

    method = 'email' if check_in.customer_email else 'sms'
    try:
        review_request = ReviewRequestServiceSingleton.get_instance().create_and_send(
            company,
            technician,
            check_in.customer_name,
            method,
            email=check_in.customer_email,
            phone=check_in.customer_phone,
            job_type=check_in.job_type,
            check_in_id=check_in.id,
        )
        return {'id': review_request.id, 'status': review_request.status, 'method': method}
    except Exception as e:
        logger.error(f"Review request failed for check-in {check_in.id}: {e}")
        return None


@check_ins_bp.route('/<int:check_in_id>', methods=['GET'])
@require_auth
def get_check_in(check_in_id):
    check_in, error = _load_check_in(check_in_id)
    if error:
        return error
    return jsonify({**check_in.to_dict(), 'technician_name': _technician_name(check_in.technician_id)})


@check_ins_bp.route('/<int:check_in_id>', methods=['PATCH', 'PUT'])
@require_active_subscription
def update_check_in(check_in_id):
    check_in, error = _load_check_in(check_in_id)
    if error:
        return error

    fields = _editable_fields(request.get_json(silent=True) or {})
    if 'job_type' in fields and not (fields['job_type'] or '').strip():
        return jsonify({"error": "Job type cannot be empty"}), 400

    try:
        updated = CheckInServiceSingleton.get_instance().update(check_in_id, fields)
        return jsonify(updated.to_dict())
    except Exception as e:
        logger.error(f"Error updating check-in {check_in_id}: {e}")
        return jsonify({"error": str(e)}), 500


@check_ins_bp.route('/<int:check_in_id>', methods=['DELETE'])
@require_active_subscription
def delete_check_in(check_in_id):
    check_in, error = _load_check_in(check_in_id)
    if error:
        return error

    try:
        CheckInServiceSingleton.get_instance().delete(check_in.id)
        return jsonify({"message": "Check-in deleted"})
    except Exception as e:
        logger.error(f"Error deleting check-in {check_in_id}: {e}")
        return jsonify({"error": str(e)}), 500


@check_ins_bp.route('/<int:check_in_id>/summary', methods=['POST'])
@require_auth
def summarize_check_in(check_in_id):
    check_in, error = _load_check_in(check_in_id)
    if error:
        return error

    summary = ContentServiceSingleton.get_instance().generate_summary(
        check_in, _technician_name(check_in.technician_id)
    )
    return jsonify({'checkInId': check_in.id, 'summary': summary})
