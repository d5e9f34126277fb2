"""
CRM Integration API Routes.

- GET /api/crm/available - Supported CRMs and their credential fields
- GET /api/crm/configured - CRMs this company has connected (no secrets)
- POST /api/crm/<crm>/configure - Test credentials and save the integration
- DELETE /api/crm/<crm> - Disconnect
- POST /api/crm/sync/<check_in_id> - Push a visit to the connected CRMs
- GET /api/crm/history - Most recent sync results
"""

import logging

from flask import request, jsonify, g

from rankitpro.crm import crm_bp
from rankitpro.integrations.crm import CRMConnectorFactory, CRMError, DEFAULT_SYNC_SETTINGS
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.service import crm_sync_service
from rankitpro.service.check_in_service import CheckInServiceSingleton
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton

logger = logging.getLogger(__name__)


def _current_company():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return None
    return CompanyServiceSingleton.get_instance().get_by_id(company_id)


@crm_bp.route('/available', methods=['GET'])
@require_auth
def available_crms():
    return jsonify(CRMConnectorFactory.available())


@crm_bp.route('/configured', methods=['GET'])
@require_company_admin
def configured_crms():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    return jsonify([
        {
            'id': name,
            'enabled': integration.get('enabled', True),
            'syncSettings': integration.get('syncSettings', DEFAULT_SYNC_SETTINGS),
            'configuredAt': integration.get('configuredAt'),
        }
        for name, integration in crm_sync_service.configured_crms(company).items()
    ])


@crm_bp.route('/<crm_name>/configure', methods=['POST'])
@require_company_admin
def configure_crm(crm_name):
    crm_name = CRMConnectorFactory.normalize(crm_name)
    if not CRMConnectorFactory.connector_exists(crm_name):
        return jsonify({"error": f"Unsupported CRM: {crm_name}"}), 400

    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    data = request.get_json(silent=True) or {}
    credentials = data.get('credentials') or {}
    if not isinstance(credentials, dict):
        return jsonify({"error": "credentials must be an object"}), 400

    try:
        connector = CRMConnectorFactory.get_connector(crm_name, credentials)
        if not connector.test_connection():
            return jsonify({"error": "Connection test failed"}), 400
    except CRMError as e:
        logger.warning(f"CRM {crm_name} connection test failed for company {company.id}: {e}")
        return jsonify({"error": str(e)}), 400

    integration = crm_sync_service.save_integration(company, crm_name, credentials, data.get('syncSettings'))
    return jsonify({
        'id': crm_name,
        'enabled': integration['enabled'],
        'syncSettings': integration['syncSettings'],
        'configuredAt': integration['configuredAt'],
    })


@crm_bp.route('/<crm_name>', methods=['DELETE'])
@require_company_admin
def remove_crm(crm_name):
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    if not crm_sync_service.remove_integration(company, CRMConnectorFactory.normalize(crm_name)):
        return jsonify({"error": "CRM is not configured"}), 404
    return jsonify({"message": "CRM integration removed"})


@crm_bp.route('/sync/<int:check_in_id>', methods=['POST'])
@require_company_admin
def sync_check_in(check_in_id):
    check_in = CheckInServiceSingleton.get_instance().get_by_id(check_in_id)
    if not check_in:
        return jsonify({"error": "Check-in not found"}), 404
    if not can_access_company(g.user, check_in.company_id):
        return forbidden("Access denied to this check-in")

    company = CompanyServiceSingleton.get_instance().get_by_id(check_in.company_id)
    if not crm_sync_service.configured_crms(company):
        return jsonify({"error": "No CRM is configured"}), 400

    crm_name = (request.get_json(silent=True) or {}).get('crm')
    technician = TechnicianServiceSingleton.get_instance().get_by_id(check_in.technician_id)
    results = crm_sync_service.sync_check_in(
        company,
        check_in,
        technician.name if technician else "Technician",
        CRMConnectorFactory.normalize(crm_name) if crm_name else None,
    )
    return jsonify({
        'success': bool(results) and all(r['success'] for r in results),
        'results': results,
    })


@crm_bp.route('/history', methods=['GET'])
@require_company_admin
def sync_history():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(company.crm_sync_history or [])
