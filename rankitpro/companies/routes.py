"""
Company API Routes.

Super admin:
- GET /api/companies - List all companies
- POST /api/companies - Create a company
- DELETE /api/companies/<id> - Delete a company and its data

Company members:
- GET /api/companies/<id> - Company details
- PUT /api/companies/<id> - Update settings (company admin)
- GET /api/companies/<id>/stats - Dashboard statistics
"""

import logging

from flask import request, jsonify, g

from rankitpro.companies import companies_bp
from rankitpro.middleware.auth import (
    require_auth,
    require_super_admin,
    require_company_admin,
    can_access_company,
    forbidden,
)
from rankitpro.models.company import Company
from rankitpro.service.analytics_service import get_company_stats
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.utils.constants import PLANS, PLAN_USAGE_LIMITS
from rankitpro.utils.validators import ValidationError, require_choice

logger = logging.getLogger(__name__)


@companies_bp.route('', methods=['GET'])
@require_super_admin
def list_companies():
    try:
        companies = CompanyServiceSingleton.get_instance().get_all()
        return jsonify([c.to_public_dict() for c in companies])
    except Exception as e:
        logger.error(f"Error listing companies: {e}")
        return jsonify({"error": str(e)}), 500


@companies_bp.route('', methods=['POST'])
@require_super_admin
def create_company():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    plan = data.get('plan') or 'starter'

    if not name:
        return jsonify({"error": "Company name is required"}), 400
    try:
        require_choice(plan, PLANS, 'plan')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        company = Company()
        company.name = name
        company.plan = plan
        if data.get('usageLimit') is not None:
            company.usage_limit = int(data['usageLimit'])
        company = CompanyServiceSingleton.get_instance().create(company)
        return jsonify(company.to_public_dict()), 201
    except Exception as e:
        logger.error(f"Error creating company: {e}")
        return jsonify({"error": str(e)}), 500


@companies_bp.route('/<int:company_id>', methods=['GET'])
@require_auth
def get_company(company_id):
    if not can_access_company(g.user, company_id):
        return forbidden("Access denied to this company")

    company = CompanyServiceSingleton.get_instance().get_by_id(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(company.to_public_dict())


@companies_bp.route('/<int:company_id>', methods=['PUT'])
@require_company_admin
def update_company(company_id):
    if not can_access_company(g.user, company_id):
        return forbidden("Access denied to this company")

    data = request.get_json(silent=True) or {}
    company_service = CompanyServiceSingleton.get_instance()
    company = company_service.get_by_id(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404

    fields = {}
    try:
        if 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError("Company name cannot be empty")
            fields['name'] = name
        if 'plan' in data:
            require_choice(data['plan'], PLANS, 'plan')
            fields['plan'] = data['plan']
            if 'usageLimit' not in data:
                fields['usage_limit'] = PLAN_USAGE_LIMITS[data['plan']]
        if 'usageLimit' in data:
            try:
                usage_limit = int(data['usageLimit'])
            except (TypeError, ValueError):
                raise ValidationError("usageLimit must be an integer")
            if usage_limit < 0:
                raise ValidationError("usageLimit cannot be negative")
            fields['usage_limit'] = usage_limit
        if 'featuresEnabled' in data:
            features = data['featuresEnabled']
            if not isinstance(features, dict) or not all(isinstance(v, bool) for v in features.values()):
                raise ValidationError("featuresEnabled must map feature names to booleans")
            fields['features_enabled'] = {**(company.features_enabled or {}), **features}
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    # plan changes on paid accounts go through billing
    if 'plan' in fields and g.user.role != 'super_admin' and company.has_subscription:
        return jsonify({"error": "Use billing to change the plan of a subscribed company"}), 400

    try:
        updated = company_service.update(company_id, fields)
        return jsonify(updated.to_public_dict())
    except Exception as e:
        logger.error(f"Error updating company {company_id}: {e}")
        return jsonify({"error": str(e)}), 500


@companies_bp.route('/<int:company_id>', methods=['DELETE'])
@require_super_admin
def delete_company(company_id):
    company_service = CompanyServiceSingleton.get_instance()
    if not company_service.get_by_id(company_id):
        return jsonify({"error": "Company not found"}), 404

    try:
        company_service.delete(company_id)
        logger.info(f"Super admin {g.user.id} deleted company {company_id}")
        return jsonify({"message": "Company deleted successfully"})
    except Exception as e:
        logger.error(f"Error deleting company {company_id}: {e}")
        return jsonify({"error": str(e)}), 500


@companies_bp.route('/<int:company_id>/stats', methods=['GET'])
@require_auth
def company_stats(company_id):
    if not can_access_company(g.user, company_id):
        return forbidden("Access denied to this company")

    try:
        return jsonify(get_company_stats(company_id))
    except Exception as e:
        logger.error(f"Error getting stats for company {company_id}: {e}")
        return jsonify({"error": str(e)}), 500
