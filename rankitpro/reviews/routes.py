"""
Review Request API Routes.

- GET /api/review-requests - Company review requests with technician names
- POST /api/review-requests/send - Ask a customer for a review
- POST /api/review-requests/resend/<id> - Send an existing request again
- GET /api/review-requests/stats - Delivery and response statistics
- GET/POST /api/review-requests/settings - Review automation settings
"""

import logging

from flask import request, jsonify, g

from rankitpro.reviews import review_requests_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.middleware.subscription_check import require_active_subscription
from rankitpro.models.review import ReviewRequest
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.review_request_service import ReviewRequestServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.utils.validators import (
    ValidationError,
    is_valid_email,
    require_choice,
    require_fields,
    require_int_range,
)

logger = logging.getLogger(__name__)

CONTACT_PREFERENCES = ('email', 'sms', 'both', 'customer-preference')
BOOLEAN_SETTINGS = ('autoSendReviews', 'includeTechnicianName', 'includeJobDetails', 'followUpEnabled')
# setting -> (minimum, maximum)
RANGE_SETTINGS = {
    'delayHours': (0, 240),
    'followUpDelayDays': (1, 30),
    'maxFollowUps': (0, 3),
}


@review_requests_bp.route('', methods=['GET'])
@require_auth
def list_review_requests():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])

    try:
        requests_ = ReviewRequestServiceSingleton.get_instance().get_by_company(company_id)
        technicians = TechnicianServiceSingleton.get_instance().get_by_company(company_id, active_only=False)
        names = {t.id: t.name for t in technicians}
        return jsonify([
            {**r.to_dict(), 'technician_name': names.get(r.technician_id)}
            for r in requests_
        ])
    except Exception as e:
        logger.error(f"Error listing review requests: {e}")
        return jsonify({"error": str(e)}), 500


@review_requests_bp.route('/send', methods=['POST'])
@require_active_subscription
def send_review_request():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip() or None
    phone = (data.get('phone') or '').strip() or None
    method = data.get('method') or 'email'

    try:
        require_fields(data, ['customerName', 'technicianId'])
        require_choice(method, ReviewRequest.METHODS, 'method')
        if not email and not phone:
            raise ValidationError("Either email or phone is required")
        if method == 'email' and not email:
            raise ValidationError("Email is required when method is email")
        if method == 'sms' and not phone:
            raise ValidationError("Phone is required when method is sms")
        if email and not is_valid_email(email):
            raise ValidationError("Invalid email address", [{'field': 'email', 'message': 'Invalid email address'}])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    technician = TechnicianServiceSingleton.get_instance().get_by_id(data['technicianId'])
    if not technician:
        return jsonify({"error": "Technician not found"}), 404
    if not can_access_company(g.user, technician.company_id):
        return forbidden("Technician does not belong to your company")

    company = g.get('company') or CompanyServiceSingleton.get_instance().get_by_id(technician.company_id)

    try:
        review_request = ReviewRequestServiceSingleton.get_instance().create_and_send(
            company,
            technician,
            data['customerName'].strip(),
            method,
            email=email,
            phone=phone,
            job_type=data.get('jobType'),
            custom_message=data.get('customMessage'),
        )
    except Exception as e:
        logger.error(f"Error sending review request: {e}")
        return jsonify({"error": str(e)}), 500

    body = {
        **review_request.to_dict(),
        'technician_name': technician.name,
        'success': review_request.status == 'sent',
    }
    return jsonify(body), 201


@review_requests_bp.route('/resend/<int:request_id>', methods=['POST'])
@require_active_subscription
def resend_review_request(request_id):
    service = ReviewRequestServiceSingleton.get_instance()
    review_request = service.get_by_id(request_id)
    if not review_request:
        return jsonify({"error": "Review request not found"}), 404
    if not can_access_company(g.user, review_request.company_id):
        return forbidden("Access denied to this review request")
    if review_request.completed_at:
        return jsonify({"error": "The customer has already responded"}), 400

    company = CompanyServiceSingleton.get_instance().get_by_id(review_request.company_id)
    technician = TechnicianServiceSingleton.get_instance().get_by_id(review_request.technician_id)
    settings = CompanyServiceSingleton.get_instance().get_review_settings(review_request.company_id)

    updated = service.send(review_request, company, technician, settings.get('includeTechnicianName', True))
    return jsonify({**updated.to_dict(), 'success': updated.status == 'sent'})


@review_requests_bp.route('/stats', methods=['GET'])
@require_company_admin
def review_stats():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify({"error": "companyId is required"}), 400

    try:
        return jsonify(ReviewRequestServiceSingleton.get_instance().get_stats(company_id))
    except Exception as e:
        logger.error(f"Error getting review stats: {e}")
        return jsonify({"error": str(e)}), 500


@review_requests_bp.route('/settings', methods=['GET'])
@require_company_admin
def get_review_settings():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify({"error": "companyId is required"}), 400
    return jsonify(CompanyServiceSingleton.get_instance().get_review_settings(company_id))


@review_requests_bp.route('/settings', methods=['POST', 'PUT'])
@require_company_admin
def save_review_settings():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify({"error": "companyId is required"}), 400

    data = request.get_json(silent=True) or {}
    company_service = CompanyServiceSingleton.get_instance()
    settings = company_service.get_review_settings(company_id)

    try:
        for key in BOOLEAN_SETTINGS:
            if key in data:
                if not isinstance(data[key], bool):
                    raise ValidationError(f"Invalid {key}", [{'field': key, 'message': 'must be true or false'}])
                settings[key] = data[key]
        for key, (minimum, maximum) in RANGE_SETTINGS.items():
            if key in data:
                settings[key] = require_int_range(data[key], key, minimum, maximum)
        if 'contactPreference' in data:
            require_choice(data['contactPreference'], CONTACT_PREFERENCES, 'contactPreference')
            settings['contactPreference'] = data['contactPreference']
        for key in ('emailTemplate', 'smsTemplate'):
            if key in data:
                settings[key] = str(data[key])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    if not company_service.update(company_id, {'review_settings': settings}):
        return jsonify({"error": "Company not found"}), 404
    logger.info(f"Review settings updated for company {company_id}")
    return jsonify(settings)
