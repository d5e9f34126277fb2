"""
User management API Routes.

- GET /api/users - Users of the caller's company (super admin: all, ?role=)
- POST /api/users - Create a user
- PUT /api/users/<id> - Update a user
- DELETE /api/users/<id> - Deactivate a user
- PUT /api/users/me/preferences - Notification preferences
"""

import logging

from flask import request, jsonify, g

from rankitpro.users import users_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, forbidden
from rankitpro.models.technician import Technician
from rankitpro.models.user import User
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.usage_service import check_limit
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles, MIN_PASSWORD_LENGTH
from rankitpro.utils.validators import ValidationError, is_valid_email, require_choice, require_fields

logger = logging.getLogger(__name__)

COMPANY_ADMIN_ROLES = (Roles.COMPANY_ADMIN, Roles.TECHNICIAN)
PREFERENCE_KEYS = ('emailNotifications', 'checkInAlerts', 'reviewAlerts', 'blogPostAlerts', 'weeklyDigest', 'smsNotifications')


def _assignable_roles():
    return Roles.ALL if g.user.is_super_admin else COMPANY_ADMIN_ROLES


def _load_user(user_id):
    user = UserServiceSingleton.get_instance().get_by_id(user_id)
    if not user:
        return None, (jsonify({"error": "User not found"}), 404)
    if not g.user.is_super_admin and (user.company_id is None or not can_access_company(g.user, user.company_id)):
        return None, forbidden("Access denied to this user")
    if not g.user.is_super_admin and user.role == Roles.SUPER_ADMIN:
        return None, forbidden("Access denied to this user")
    return user, None


@users_bp.route('', methods=['GET'])
@require_company_admin
def list_users():
    service = UserServiceSingleton.get_instance()
    role = request.args.get('role')
    if g.user.is_super_admin:
        company_id = request.args.get('company_id', type=int)
        users = service.get_by_company(company_id, role) if company_id else service.get_all(role)
    else:
        users = service.get_by_company(g.user.company_id, role)
    return jsonify([u.to_public_dict() for u in users])


@users_bp.route('', methods=['POST'])
@require_company_admin
def create_user():
    data = request.get_json(silent=True) or {}
    role = data.get('role') or Roles.TECHNICIAN

    try:
        require_fields(data, ['email', 'password'])
        if not is_valid_email(data['email']):
            raise ValidationError("Invalid email address", [{'field': 'email', 'message': 'Invalid email address'}])
        if len(data['password']) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password too short", [
                {'field': 'password', 'message': f"must be at least {MIN_PASSWORD_LENGTH} characters"}
            ])
        require_choice(role, _assignable_roles(), 'role')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    company_id = g.user.company_id
    if g.user.is_super_admin:
        company_id = data.get('companyId')
    if role in COMPANY_ADMIN_ROLES and not company_id:
        return jsonify({"error": "companyId is required for this role"}), 400

    company = None
    if company_id:
        company = CompanyServiceSingleton.get_instance().get_by_id(company_id)
        if not company:
            return jsonify({"error": "Company not found"}), 404

    service = UserServiceSingleton.get_instance()
    email = data['email'].strip().lower()
    if service.get_by_email(email):
        return jsonify({"error": "Email already in use"}), 400
    username = (data.get('username') or '').strip()
    if username and service.get_by_username(username):
        return jsonify({"error": "Username already taken"}), 400

    if role == Roles.TECHNICIAN:
        limit_error = check_limit(company, 'technicians')
        if limit_error:
            return jsonify(limit_error), 403

    try:
        user = User()
        user.email = email
        user.username = username or service.unique_username(email)
        user.role = role
        user.company_id = company.id if company else None
        user = service.create(user, data['password'])

        body = user.to_public_dict()
        if role == Roles.TECHNICIAN:
            technician = Technician()
            technician.name = (data.get('name') or user.username).strip()
            technician.email = user.email
            technician.phone = data.get('phone')
            technician.location = data.get('location')
            technician.specialty = data.get('specialty')
            technician.user_id = user.id
            technician.company_id = company.id
            body['technician'] = TechnicianServiceSingleton.get_instance().create(technician).to_dict()

        logger.info(f"User {g.user.id} created {role} user {user.id}")
        return jsonify(body), 201
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        return jsonify({"error": str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['PUT'])
@require_company_admin
def update_user(user_id):
    user, error = _load_user(user_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    service = UserServiceSingleton.get_instance()
    fields = {}

    try:
        if 'email' in data:
            if not is_valid_email(data['email']):
                raise ValidationError("Invalid email address", [{'field': 'email', 'message': 'Invalid email address'}])
            email = data['email'].strip().lower()
            existing = service.get_by_email(email)
            if existing and existing.id != user.id:
                raise ValidationError("Email already in use")
            fields['email'] = email
        if 'username' in data:
            username = (data['username'] or '').strip()
            existing = service.get_by_username(username) if username else None
            if not username or (existing and existing.id != user.id):
                raise ValidationError("Username is empty or already taken")
            fields['username'] = username
        if 'role' in data:
            require_choice(data['role'], _assignable_roles(), 'role')
            if user.id == g.user.id and data['role'] != user.role:
                raise ValidationError("You cannot change your own role")
            fields['role'] = data['role']
        if 'active' in data:
            if user.id == g.user.id and not data['active']:
                raise ValidationError("You cannot deactivate your own account")
            fields['active'] = bool(data['active'])
        if data.get('password') and len(data['password']) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = service.update(user.id, fields)
        if data.get('password'):
            updated = service.set_password(user.id, data['password'])
        return jsonify(updated.to_public_dict())
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {e}")
        return jsonify({"error": str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@require_company_admin
def deactivate_user(user_id):
    user, error = _load_user(user_id)
    if error:
        return error
    if user.id == g.user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400

    UserServiceSingleton.get_instance().deactivate(user.id)
    technician = TechnicianServiceSingleton.get_instance().get_by_user_id(user.id)
    if technician:
        TechnicianServiceSingleton.get_instance().deactivate(technician.id)

    logger.info(f"User {user.id} deactivated by {g.user.id}")
    return jsonify({"message": "User deactivated"})


@users_bp.route('/me/preferences', methods=['GET'])
@require_auth
def get_preferences():
    return jsonify(g.user.notification_preferences or {})


@users_bp.route('/me/preferences', methods=['PUT'])
@require_auth
def update_preferences():
    data = request.get_json(silent=True) or {}
    preferences = dict(g.user.notification_preferences or {})
    for key in PREFERENCE_KEYS:
        if key in data:
            if not isinstance(data[key], bool):
                return jsonify({"error": f"{key} must be true or false"}), 400
            preferences[key] = data[key]

    UserServiceSingleton.get_instance().update(g.user.id, {'notification_preferences': preferences})
    return jsonify(preferences)
