"""
Testimonial API Routes.

- POST /api/testimonials - Record an audio or video testimonial
- GET /api/testimonials - Company testimonials (?status ?type ?isPublic)
- GET /api/testimonials/<id> - Single testimonial
- PATCH /api/testimonials/<id>/status - Approve, publish or reject
- GET /api/testimonials/shortcode - WordPress shortcode and JS embed snippet
- GET/POST /api/testimonials/approve/<token> - Customer approval page (public)
- GET /api/embed/testimonials - Published testimonials as HTML (public)
"""

import logging
from html import escape as html_escape

from flask import request, jsonify, g

from rankitpro.testimonials import testimonials_bp, testimonial_embed_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.middleware.subscription_check import require_active_subscription
from rankitpro.models.testimonial import Testimonial
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.testimonial_service import TestimonialServiceSingleton
from rankitpro.utils.constants import Settings
from rankitpro.utils.dates import parse_datetime, utcnow
from rankitpro.utils.validators import (
    ValidationError,
    is_valid_email,
    require_choice,
    require_fields,
    require_int_range,
)

logger = logging.getLogger(__name__)

MAX_EMBED_TESTIMONIALS = 20


def _approval_error(approval):
    if not approval:
        return jsonify({"error": "Invalid approval link"}), 404
    expires_at = parse_datetime(approval.expires_at)
    if expires_at and expires_at < utcnow():
        return jsonify({"error": "Approval link has expired"}), 400
    if approval.status != 'pending':
        return jsonify({"error": "Testimonial has already been processed"}), 400
    return None


def _render_embed(testimonials):
    cards = []
    for t in testimonials:
        tag = 'video' if t.type == 'video' else 'audio'
        stars = '&#9733;' * (t.rating or 0)
        cards.append(
            '<div class="rankitpro-testimonial">'
            f'<h4>{html_escape(t.title or "")}</h4>'
            f'<{tag} src="{html_escape(t.storage_url or "")}" controls></{tag}>'
            f'<p class="rankitpro-customer">{html_escape(t.customer_name or "")}</p>'
            + (f'<p class="rankitpro-rating">{stars}</p>' if stars else '')
            + '</div>'
        )
    return f'<div class="rankitpro-testimonials">{"".join(cards)}</div>'


@testimonials_bp.route('', methods=['POST'])
@require_active_subscription
def create_testimonial():
    data = request.get_json(silent=True) or {}
    email = (data.get('customerEmail') or '').strip() or None

    try:
        require_fields(data, ['technicianId', 'customerName', 'title', 'type', 'storageUrl'])
        require_choice(data['type'], Testimonial.TYPES, 'type')
        rating = None
        if data.get('rating') is not None:
            rating = require_int_range(data['rating'], 'rating', 1, 5)
        if email and not is_valid_email(email):
            raise ValidationError("Invalid email address", [{'field': 'customerEmail', 'message': 'Invalid email address'}])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    technician = TechnicianServiceSingleton.get_instance().get_by_id(data['technicianId'])
    if not technician:
        return jsonify({"error": "Technician not found"}), 404
    if not can_access_company(g.user, technician.company_id):
        return forbidden("Technician does not belong to your company")

    company = g.get('company') or CompanyServiceSingleton.get_instance().get_by_id(technician.company_id)

    testimonial = Testimonial()
    testimonial.company_id = technician.company_id
    testimonial.technician_id = technician.id
    testimonial.check_in_id = data.get('checkInId')
    testimonial.customer_name = data['customerName'].strip()
    testimonial.customer_email = email
    testimonial.customer_phone = data.get('customerPhone')
    testimonial.type = data['type']
    testimonial.title = data['title'].strip()
    testimonial.content = data.get('content')
    testimonial.duration = data.get('duration')
    testimonial.original_file_name = data.get('originalFileName')
    testimonial.file_size = data.get('fileSize')
    testimonial.mime_type = data.get('mimeType')
    testimonial.storage_url = data['storageUrl']
    testimonial.thumbnail_url = data.get('thumbnailUrl')
    testimonial.job_type = data.get('jobType')
    testimonial.location = data.get('location')
    testimonial.rating = rating
    testimonial.tags = data.get('tags')

    try:
        service = TestimonialServiceSingleton.get_instance()
        testimonial = service.create(testimonial)
        approval = service.send_approval_request(testimonial, company)
        logger.info(f"Testimonial {testimonial.id} recorded for company {testimonial.company_id}")
    except Exception as e:
        logger.error(f"Error creating testimonial: {e}")
        return jsonify({"error": str(e)}), 500

    return jsonify({**testimonial.to_dict(), 'approvalRequested': approval is not None}), 201


@testimonials_bp.route('', methods=['GET'])
@require_auth
def list_testimonials():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])

    filters = {}
    if request.args.get('status'):
        filters['status'] = request.args['status']
    if request.args.get('type'):
        filters['type'] = request.args['type']
    if request.args.get('isPublic') is not None:
        filters['is_public'] = request.args['isPublic'].lower() == 'true'

    try:
        testimonials = TestimonialServiceSingleton.get_instance().get_by_company(company_id, filters)
        return jsonify([t.to_dict() for t in testimonials])
    except Exception as e:
        logger.error(f"Error listing testimonials: {e}")
        return jsonify({"error": str(e)}), 500


@testimonials_bp.route('/<int:testimonial_id>', methods=['GET'])
@require_auth
def get_testimonial(testimonial_id):
    testimonial = TestimonialServiceSingleton.get_instance().get_by_id(testimonial_id)
    if not testimonial:
        return jsonify({"error": "Testimonial not found"}), 404
    if not can_access_company(g.user, testimonial.company_id):
        return forbidden()
    return jsonify(testimonial.to_dict())


@testimonials_bp.route('/<int:testimonial_id>/status', methods=['PATCH'])
@require_company_admin
def update_testimonial_status(testimonial_id):
    data = request.get_json(silent=True) or {}
    try:
        require_choice(data.get('status'), Testimonial.STATUSES, 'status')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    service = TestimonialServiceSingleton.get_instance()
    testimonial = service.get_by_id(testimonial_id)
    if not testimonial:
        return jsonify({"error": "Testimonial not found"}), 404
    if not can_access_company(g.user, testimonial.company_id):
        return forbidden()

    try:
        updated = service.set_status(testimonial_id, data['status'])
        return jsonify(updated.to_dict())
    except Exception as e:
        logger.error(f"Error updating testimonial {testimonial_id}: {e}")
        return jsonify({"error": str(e)}), 500


@testimonials_bp.route('/shortcode', methods=['GET'])
@require_auth
def testimonial_shortcode():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify({"error": "No company associated with this user"}), 400

    location = request.args.get('location', '')
    service = request.args.get('service', '')
    media_type = request.args.get('type', '')
    limit = request.args.get('limit', 5, type=int)

    shortcode = (
        f'[rank_it_pro_testimonials location="{location}" service="{service}" '
        f'type="{media_type}" limit="{limit}" company_id="{company_id}"]'
    )
    api_base = Settings().API_BASE_URL.rstrip('/')
    target = f"rankitpro-testimonials-{company_id}"
    embed = (
        f'<div id="{target}"></div>\n'
        f'<script>fetch("{api_base}/api/embed/testimonials?company_id={company_id}&limit={limit}")'
        f'.then(function (r) {{ return r.json(); }})'
        f'.then(function (d) {{ document.getElementById("{target}").innerHTML = d.html; }});</script>'
    )
    return jsonify({'shortcode': shortcode, 'embedCode': embed})


@testimonials_bp.route('/approve/<token>', methods=['GET'])
def get_testimonial_approval(token):
    service = TestimonialServiceSingleton.get_instance()
    approval = service.get_approval_by_token(token)
    error = _approval_error(approval)
    if error:
        return error

    testimonial = service.get_by_id(approval.testimonial_id)
    if not testimonial:
        return jsonify({"error": "Testimonial not found"}), 404
    company = CompanyServiceSingleton.get_instance().get_by_id(testimonial.company_id)
    return jsonify({
        'testimonial': {
            'id': testimonial.id,
            'title': testimonial.title,
            'type': testimonial.type,
            'storageUrl': testimonial.storage_url,
            'customerName': testimonial.customer_name,
            'companyName': company.name if company else None,
        },
        'approval': {
            'status': approval.status,
            'expiresAt': approval.to_dict().get('expires_at'),
        },
    })


@testimonials_bp.route('/approve/<token>', methods=['POST'])
def submit_testimonial_approval(token):
    service = TestimonialServiceSingleton.get_instance()
    approval = service.get_approval_by_token(token)
    error = _approval_error(approval)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('approved'), bool):
        return jsonify({
            "error": "Invalid input",
            "details": [{"field": "approved", "message": "must be true or false"}],
        }), 400

    try:
        testimonial = service.resolve_approval(approval, data['approved'], (data.get('reason') or '').strip() or None)
        decision = 'approved' if data['approved'] else 'rejected'
        logger.info(f"Customer {decision} testimonial {approval.testimonial_id}")
        return jsonify({'message': f"Testimonial {decision}", 'status': testimonial.status if testimonial else decision})
    except Exception as e:
        logger.error(f"Error recording approval for testimonial {approval.testimonial_id}: {e}")
        return jsonify({"error": str(e)}), 500


@testimonial_embed_bp.route('/testimonials', methods=['GET'])
def embed_testimonials():
    company_id = request.args.get('company_id', type=int)
    if not company_id:
        return jsonify({"error": "company_id is required"}), 400

    limit = max(1, min(request.args.get('limit', 5, type=int), MAX_EMBED_TESTIMONIALS))
    testimonials = TestimonialServiceSingleton.get_instance().get_published(
        company_id,
        media_type=request.args.get('type') or None,
        location=request.args.get('location') or None,
        service=request.args.get('service') or None,
        limit=limit,
    )
    return jsonify({
        'html': _render_embed(testimonials),
        'count': len(testimonials),
        'testimonials': [
            {
                'id': t.id,
                'title': t.title,
                'customerName': t.customer_name,
                'type': t.type,
                'rating': t.rating,
                'location': t.location,
                'jobType': t.job_type,
                'storageUrl': t.storage_url,
            }
            for t in testimonials
        ],
    })
