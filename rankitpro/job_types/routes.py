import logging

from flask import request, jsonify, g

from rankitpro.job_types import job_types_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.models.technician import JobType
from rankitpro.service.job_type_service import JobTypeServiceSingleton

logger = logging.getLogger(__name__)


@job_types_bp.route('', methods=['GET'])
@require_auth
def list_job_types():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])
    job_types = JobTypeServiceSingleton.get_instance().get_by_company(company_id)
    return jsonify([j.to_dict() for j in job_types])


@job_types_bp.route('', methods=['POST'])
@require_company_admin
def create_job_type():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    company_id = resolve_company_id(g.user)
    if g.user.is_super_admin and data.get('companyId'):
        company_id = data['companyId']

    if not name:
        return jsonify({"error": "Job type name is required"}), 400
    if not company_id:
        return jsonify({"error": "companyId is required"}), 400

    service = JobTypeServiceSingleton.get_instance()
    if service.get_by_name(company_id, name):
        return jsonify({"error": "A job type with this name already exists"}), 400

    try:
        job_type = JobType()
        job_type.name = name
        job_type.description = data.get('description')
        job_type.company_id = company_id
        return jsonify(service.create(job_type).to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating job type: {e}")
        return jsonify({"error": str(e)}), 500


@job_types_bp.route('/<int:job_type_id>', methods=['PUT'])
@require_company_admin
def update_job_type(job_type_id):
    service = JobTypeServiceSingleton.get_instance()
    job_type = service.get_by_id(job_type_id)
    if not job_type:
        return jsonify({"error": "Job type not found"}), 404
    if not can_access_company(g.user, job_type.company_id):
        return forbidden("Access denied to this job type")

    data = request.get_json(silent=True) or {}
    fields = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({"error": "Job type name cannot be empty"}), 400
        existing = service.get_by_name(job_type.company_id, name)
        if existing and existing.id != job_type.id:
            return jsonify({"error": "A job type with this name already exists"}), 400
        fields['name'] = name
    if 'description' in data:
        fields['description'] = data['description']
    if 'isActive' in data:
        fields['is_active'] = bool(data['isActive'])

    updated = service.update(job_type_id, fields) if fields else job_type
    return jsonify(updated.to_dict())


@job_types_bp.route('/<int:job_type_id>', methods=['DELETE'])
@require_company_admin
def delete_job_type(job_type_id):
    service = JobTypeServiceSingleton.get_instance()
    job_type = service.get_by_id(job_type_id)
    if not job_type:
        return jsonify({"error": "Job type not found"}), 404
    if not can_access_company(g.user, job_type.company_id):
        return forbidden("Access denied to this job type")

    service.update(job_type_id, {'is_active': False})
    return jsonify({"message": "Job type deactivated"})
