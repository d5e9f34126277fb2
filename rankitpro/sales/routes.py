"""
Sales API Routes.

Super admin:
- GET/POST /api/sales/people - Sales staff
- PUT /api/sales/people/<id>
- GET /api/sales/people/<id>/commissions
- POST /api/sales/assignments - Attribute a company to a sales person
- POST /api/sales/commissions/calculate - Monthly renewal commissions
- POST /api/sales/commissions/approve
- PATCH /api/sales/commissions/<id>/paid
- GET /api/sales/dashboard

Sales staff:
- GET /api/sales/me - Own profile, stats, commissions and companies
"""

import logging
import secrets

from flask import request, jsonify, g

from rankitpro.sales import sales_bp
from rankitpro.middleware.auth import require_super_admin, require_roles
from rankitpro.models.sales import SalesPerson, SalesCommission
from rankitpro.models.user import User
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.sales_service import SalesServiceSingleton
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import DEFAULT_COMMISSION_RATE, Roles
from rankitpro.utils.dates import previous_month
from rankitpro.utils.validators import ValidationError, is_valid_email, parse_month, require_fields

logger = logging.getLogger(__name__)


def _commission_rate(value) -> float:
    """Commission rates arrive as a percentage and are stored as a fraction."""
    try:
        percent = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid commissionRate", [{'field': 'commissionRate', 'message': 'must be a number'}])
    if percent < 0 or percent > 100:
        raise ValidationError("Invalid commissionRate", [{'field': 'commissionRate', 'message': 'must be between 0 and 100'}])
    return round(percent / 100, 4)


# =============================================================================
# Sales people
# =============================================================================

@sales_bp.route('/people', methods=['GET'])
@require_super_admin
def list_people():
    service = SalesServiceSingleton.get_instance()
    return jsonify([
        {**person.to_dict(), 'stats': service.get_person_stats(person)}
        for person in service.get_people()
    ])


@sales_bp.route('/people', methods=['POST'])
@require_super_admin
def create_person():
    data = request.get_json(silent=True) or {}
    try:
        require_fields(data, ['name', 'email'])
        if not is_valid_email(data['email']):
            raise ValidationError("Invalid email address", [{'field': 'email', 'message': 'Invalid email address'}])
        rate = _commission_rate(data['commissionRate']) if 'commissionRate' in data else DEFAULT_COMMISSION_RATE
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    user_service = UserServiceSingleton.get_instance()
    email = data['email'].strip().lower()
    user = user_service.get_by_email(email)
    if user and SalesServiceSingleton.get_instance().get_person_by_user(user.id):
        return jsonify({"error": "This user is already a sales person"}), 400

    try:
        if not user:
            user = User()
            user.email = email
            user.username = user_service.unique_username(email)
            user.role = Roles.SALES_STAFF
            user = user_service.create(user, data.get('password') or secrets.token_urlsafe(16))
            logger.info(f"Created sales_staff user {user.id} for {email}")

        person = SalesPerson()
        person.user_id = user.id
        person.name = data['name'].strip()
        person.email = email
        person.phone = data.get('phone')
        person.commission_rate = rate
        person = SalesServiceSingleton.get_instance().create_person(person)
        return jsonify(person.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating sales person: {e}")
        return jsonify({"error": str(e)}), 500


@sales_bp.route('/people/<int:person_id>', methods=['PUT'])
@require_super_admin
def update_person(person_id):
    service = SalesServiceSingleton.get_instance()
    if not service.get_person(person_id):
        return jsonify({"error": "Sales person not found"}), 404

    data = request.get_json(silent=True) or {}
    fields = {}
    try:
        if 'name' in data:
            if not (data['name'] or '').strip():
                raise ValidationError("name cannot be empty")
            fields['name'] = data['name'].strip()
        if 'phone' in data:
            fields['phone'] = data['phone']
        if 'commissionRate' in data:
            fields['commission_rate'] = _commission_rate(data['commissionRate'])
        if 'isActive' in data:
            fields['is_active'] = bool(data['isActive'])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    person = service.update_person(person_id, fields) if fields else service.get_person(person_id)
    return jsonify(person.to_dict())


@sales_bp.route('/people/<int:person_id>/commissions', methods=['GET'])
@require_super_admin
def person_commissions(person_id):
    service = SalesServiceSingleton.get_instance()
    if not service.get_person(person_id):
        return jsonify({"error": "Sales person not found"}), 404

    commissions = service.get_commissions(person_id, request.args.get('status'))
    return jsonify([c.to_dict() for c in commissions])


# =============================================================================
# Assignments
# =============================================================================

@sales_bp.route('/assignments', methods=['GET'])
@require_super_admin
def list_assignments():
    assignments = SalesServiceSingleton.get_instance().get_assignments(
        request.args.get('sales_person_id', type=int),
        active_only=request.args.get('active', 'false').lower() == 'true',
    )
    return jsonify([a.to_dict() for a in assignments])


@sales_bp.route('/assignments', methods=['POST'])
@require_super_admin
def assign_company():
    data = request.get_json(silent=True) or {}
    try:
        require_fields(data, ['salesPersonId', 'companyId'])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    service = SalesServiceSingleton.get_instance()
    person = service.get_person(data['salesPersonId'])
    if not person:
        return jsonify({"error": "Sales person not found"}), 404
    company = CompanyServiceSingleton.get_instance().get_by_id(data['companyId'])
    if not company:
        return jsonify({"error": "Company not found"}), 404

    try:
        assignment = service.assign_company(person, company)
        return jsonify(assignment.to_dict()), 201
    except Exception as e:
        logger.error(f"Error assigning company {company.id} to sales person {person.id}: {e}")
        return jsonify({"error": str(e)}), 500


# =============================================================================
# Commissions
# =============================================================================

@sales_bp.route('/commissions', methods=['GET'])
@require_super_admin
def list_commissions():
    status = request.args.get('status')
    if status and status not in SalesCommission.STATUSES:
        return jsonify({"error": "Invalid status"}), 400
    commissions = SalesServiceSingleton.get_instance().get_commissions(status=status)
    return jsonify([c.to_dict() for c in commissions])


@sales_bp.route('/commissions/calculate', methods=['POST'])
@require_super_admin
def calculate_commissions():
    data = request.get_json(silent=True) or {}
    month = data.get('month') or previous_month()
    try:
        parse_month(month)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = SalesServiceSingleton.get_instance().calculate_monthly_commissions(month)
        return jsonify({
            'month': month,
            'created': len(created),
            'totalAmount': round(sum(float(c.amount or 0) for c in created), 2),
            'commissions': [c.to_dict() for c in created],
        })
    except Exception as e:
        logger.error(f"Error calculating commissions for {month}: {e}")
        return jsonify({"error": str(e)}), 500


@sales_bp.route('/commissions/approve', methods=['POST'])
@require_super_admin
def approve_commissions():
    data = request.get_json(silent=True) or {}
    commission_ids = data.get('commissionIds')
    if not isinstance(commission_ids, list) or not commission_ids:
        return jsonify({"error": "commissionIds must be a non-empty list"}), 400

    approved = SalesServiceSingleton.get_instance().approve_commissions(commission_ids)
    return jsonify({'approved': approved})


@sales_bp.route('/commissions/<int:commission_id>/paid', methods=['PATCH'])
@require_super_admin
def mark_commission_paid(commission_id):
    commission = SalesServiceSingleton.get_instance().mark_paid(commission_id)
    if not commission:
        return jsonify({"error": "Commission not found"}), 404
    return jsonify(commission.to_dict())


@sales_bp.route('/dashboard', methods=['GET'])
@require_super_admin
def sales_dashboard():
    try:
        return jsonify(SalesServiceSingleton.get_instance().get_dashboard())
    except Exception as e:
        logger.error(f"Error building sales dashboard: {e}")
        return jsonify({"error": str(e)}), 500


# =============================================================================
# Sales staff self-service
# =============================================================================

@sales_bp.route('/me', methods=['GET'])
@require_roles(Roles.SALES_STAFF)
def my_sales_profile():
    service = SalesServiceSingleton.get_instance()
    person = service.get_person_by_user(g.user.id)
    if not person:
        return jsonify({"error": "Sales profile not found"}), 404

    company_service = CompanyServiceSingleton.get_instance()
    companies = []
    for assignment in service.get_assignments(person.id):
        company = company_service.get_by_id(assignment.company_id)
        companies.append({
            **assignment.to_dict(),
            'company_name': company.name if company else None,
        })

    return jsonify({
        'profile': person.to_dict(),
        'stats': service.get_person_stats(person),
        'commissions': [c.to_dict() for c in service.get_commissions(person.id)],
        'companies': companies,
    })
