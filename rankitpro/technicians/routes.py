"""
Technician API Routes.

- GET /api/technicians - Technicians of the caller's company
- GET /api/technicians/all - Every technician (super admin)
- GET /api/technicians/me - Technician record linked to the caller
- GET /api/technicians/company/<id> - Technicians of a company
- GET /api/technicians/company/<id>/stats - Per-technician statistics
- POST /api/technicians - Add a technician (company admin)
- GET/PUT/DELETE /api/technicians/<id>
"""

import logging

from flask import request, jsonify, g

from rankitpro.technicians import technicians_bp
from rankitpro.middleware.auth import (
    require_auth,
    require_super_admin,
    require_company_admin,
    can_access_company,
    resolve_company_id,
    forbidden,
)
from rankitpro.models.technician import Technician
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.usage_service import check_limit
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles
from rankitpro.utils.validators import ValidationError, require_fields, is_valid_email

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'email', 'phone', 'specialty', 'location', 'active')


def _check_linked_user(user_id, company_id, technician_id=None):
    """Return an error response unless ``user_id`` may be linked to a technician of ``company_id``."""
    user = UserServiceSingleton.get_instance().get_by_id(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    if user.company_id != company_id or not can_access_company(g.user, user.company_id):
        return forbidden("User belongs to another company")
    if user.role != Roles.TECHNICIAN:
        return jsonify({"error": "Only technician users can be linked to a technician"}), 400

    linked = TechnicianServiceSingleton.get_instance().get_by_user_id(user_id)
    if linked and linked.id != technician_id:
        return jsonify({"error": "User is already linked to another technician"}), 400
    return None


def _load_technician(technician_id):
    """Return (technician, error_response) enforcing tenant access."""
    technician = TechnicianServiceSingleton.get_instance().get_by_id(technician_id)
    if not technician:
        return None, (jsonify({"error": "Technician not found"}), 404)
    if not can_access_company(g.user, technician.company_id):
        return None, forbidden("Access denied to this technician")
    return technician, None


@technicians_bp.route('', methods=['GET'])
@require_auth
def list_technicians():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])

    try:
        technicians = TechnicianServiceSingleton.get_instance().get_by_company(company_id)
        return jsonify([t.to_dict() for t in technicians])
    except Exception as e:
        logger.error(f"Error listing technicians: {e}")
        return jsonify({"error": str(e)}), 500


@technicians_bp.route('/all', methods=['GET'])
@require_super_admin
def list_all_technicians():
    try:
        technicians = TechnicianServiceSingleton.get_instance().get_all()
        return jsonify([t.to_dict() for t in technicians])
    except Exception as e:
        logger.error(f"Error listing all technicians: {e}")
        return jsonify({"error": str(e)}), 500


@technicians_bp.route('/me', methods=['GET'])
@require_auth
def my_technician_record():
    technician = TechnicianServiceSingleton.get_instance().get_by_user_id(g.user.id)
    if not technician:
        return jsonify({"error": "No technician profile linked to this account"}), 404
    return jsonify(technician.to_dict())


@technicians_bp.route('/company/<int:company_id>', methods=['GET'])
@require_auth
def company_technicians(company_id):
    if not can_access_company(g.user, company_id):
        return forbidden("Access denied to this company")

    include_inactive = request.args.get('include_inactive', 'false').lower() == 'true'
    technicians = TechnicianServiceSingleton.get_instance().get_by_company(
        company_id, active_only=not include_inactive
    )
    return jsonify([t.to_dict() for t in technicians])


@technicians_bp.route('/company/<int:company_id>/stats', methods=['GET'])
@require_company_admin
def company_technician_stats(company_id):
    if not can_access_company(g.user, company_id):
        return forbidden("Access denied to this company")

    try:
        return jsonify(TechnicianServiceSingleton.get_instance().get_stats(company_id))
    except Exception as e:
        logger.error(f"Error getting technician stats for company {company_id}: {e}")
        return jsonify({"error": str(e)}), 500


@technicians_bp.route('/<int:technician_id>', methods=['GET'])
@require_auth
def get_technician(technician_id):
    technician, error = _load_technician(technician_id)
    if error:
        return error
    return jsonify(technician.to_dict())


@technicians_bp.route('', methods=['POST'])
@require_company_admin
def create_technician():
    data = request.get_json(silent=True) or {}

    company_id = g.user.company_id
    if g.user.is_super_admin:
        company_id = data.get('companyId') or company_id
    if not company_id:
        return jsonify({"error": "companyId is required"}), 400

    try:
        require_fields(data, ['name', 'email', 'phone', 'location'])
        if not is_valid_email(data['email']):
            raise ValidationError("Invalid email address", [{'field': 'email', 'message': 'Invalid email address'}])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    company = CompanyServiceSingleton.get_instance().get_by_id(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404

    technician_service = TechnicianServiceSingleton.get_instance()
    if technician_service.get_by_email(company.id, data['email']):
        return jsonify({"error": "A technician with this email already exists"}), 400

    if data.get('userId') is not None:
        link_error = _check_linked_user(data['userId'], company.id)
        if link_error:
            return link_error

    limit_error = check_limit(company, 'technicians')
    if limit_error:
        return jsonify(limit_error), 403

    try:
        technician = Technician()
        technician.name = data['name'].strip()
        technician.email = data['email']
        technician.phone = data['phone']
        technician.location = data['location']
        technician.specialty = data.get('specialty')
        technician.user_id = data.get('userId')
        technician.company_id = company.id

        technician = technician_service.create(technician)
        logger.info(f"User {g.user.id} added technician {technician.id} to company {company.id}")
        return jsonify(technician.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating technician: {e}")
        return jsonify({"error": str(e)}), 500


@technicians_bp.route('/<int:technician_id>', methods=['PUT'])
@require_company_admin
def update_technician(technician_id):
    technician, error = _load_technician(technician_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    fields = {key: data[key] for key in UPDATABLE_FIELDS if key in data}

    if 'email' in fields:
        if not is_valid_email(fields['email'] or ''):
            return jsonify({"error": "Invalid email address"}), 400
        fields['email'] = fields['email'].strip().lower()
        existing = TechnicianServiceSingleton.get_instance().get_by_email(technician.company_id, fields['email'])
        if existing and existing.id != technician.id:
            return jsonify({"error": "A technician with this email already exists"}), 400

    if data.get('userId') is not None:
        link_error = _check_linked_user(data['userId'], technician.company_id, technician.id)
        if link_error:
            return link_error
        fields['user_id'] = data['userId']

    # reactivation counts against the plan like a new technician
    if fields.get('active') and not technician.active:
        company = CompanyServiceSingleton.get_instance().get_by_id(technician.company_id)
        limit_error = check_limit(company, 'technicians')
        if limit_error:
            return jsonify(limit_error), 403

    try:
        updated = TechnicianServiceSingleton.get_instance().update(technician_id, fields)
        return jsonify(updated.to_dict())
    except Exception as e:
        logger.error(f"Error updating technician {technician_id}: {e}")
        return jsonify({"error": str(e)}), 500


@technicians_bp.route('/<int:technician_id>', methods=['DELETE'])
@require_company_admin
def delete_technician(technician_id):
    technician, error = _load_technician(technician_id)
    if error:
        return error

    try:
        TechnicianServiceSingleton.get_instance().deactivate(technician.id)
        logger.info(f"Technician {technician.id} deactivated by user {g.user.id}")
        return jsonify({"message": "Technician deactivated"})
    except Exception as e:
        logger.error(f"Error deactivating technician {technician_id}: {e}")
        return jsonify({"error": str(e)}), 500
