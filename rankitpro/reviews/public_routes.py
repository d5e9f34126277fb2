"""
Public review endpoints used by the customer-facing review page.

No authentication: the unguessable request token is the credential.
"""

import logging

from flask import request, jsonify

from rankitpro.reviews import public_reviews_bp
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.review_request_service import ReviewRequestServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.utils.validators import ValidationError, require_int_range

logger = logging.getLogger(__name__)

MAX_PUBLIC_REVIEWS = 100


@public_reviews_bp.route('/request/<token>', methods=['GET'])
def get_review_request(token):
    review_request = ReviewRequestServiceSingleton.get_instance().get_by_token(token)
    if not review_request:
        return jsonify({"error": "Review request not found"}), 404
    if review_request.completed_at:
        return jsonify({"error": "This review has already been submitted"}), 400

    company = CompanyServiceSingleton.get_instance().get_by_id(review_request.company_id)
    technician = TechnicianServiceSingleton.get_instance().get_by_id(review_request.technician_id)
    return jsonify({
        'companyName': company.name if company else None,
        'technicianName': technician.name if technician else None,
        'jobType': review_request.job_type,
        'customerName': review_request.customer_name,
    })


@public_reviews_bp.route('/submit/<token>', methods=['POST'])
def submit_review(token):
    service = ReviewRequestServiceSingleton.get_instance()
    review_request = service.get_by_token(token)
    if not review_request:
        return jsonify({"error": "Review request not found"}), 404
    if review_request.completed_at or service.get_response_for_request(review_request.id):
        return jsonify({"error": "This review has already been submitted"}), 400

    data = request.get_json(silent=True) or {}
    try:
        rating = require_int_range(data.get('rating'), 'rating', 1, 5)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        response = service.record_response(
            review_request,
            rating,
            feedback=(data.get('feedback') or '').strip() or None,
            public_display=bool(data.get('publicDisplay', False)),
        )
        logger.info(f"Review response recorded for request {review_request.id} ({rating} stars)")
        return jsonify(response.to_dict()), 201
    except Exception as e:
        logger.error(f"Error recording review for request {review_request.id}: {e}")
        return jsonify({"error": str(e)}), 500


@public_reviews_bp.route('/public/<int:company_id>', methods=['GET'])
def public_company_reviews(company_id):
    company = CompanyServiceSingleton.get_instance().get_by_id(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404

    limit = max(1, min(request.args.get('limit', 20, type=int), MAX_PUBLIC_REVIEWS))
    responses = ReviewRequestServiceSingleton.get_instance().get_responses(company_id, public_only=True)
    ratings = [r.rating for r in responses if r.rating]
    return jsonify({
        'companyName': company.name,
        'averageRating': round(sum(ratings) / len(ratings), 1) if ratings else 0,
        'totalReviews': len(responses),
        'reviews': [
            {
                'rating': r.rating,
                'feedback': r.feedback,
                'customerName': r.customer_name,
                'respondedAt': r.to_dict().get('responded_at'),
            }
            for r in responses[:limit]
        ],
    })
