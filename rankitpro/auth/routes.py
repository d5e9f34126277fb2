"""
Auth API Routes.

- POST /api/auth/login - Log in with email and password
- POST /api/auth/register - Create a company and its first admin
- POST /api/auth/logout - End the session
- GET /api/auth/me - Current user
- POST /api/auth/change-password - Change own password
"""

import logging

from flask import request, jsonify, session, g

from rankitpro.auth import auth_bp
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.middleware.auth import require_auth, issue_token, get_current_user
from rankitpro.models.company import Company
from rankitpro.models.user import User
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.user_service import UserServiceSingleton, verify_password
from rankitpro.utils.constants import (
    PLANS, Roles, MIN_PASSWORD_LENGTH, MIN_USERNAME_LENGTH, REMEMBER_ME_LIFETIME, SESSION_LIFETIME,
)
from rankitpro.utils.dates import utcnow
from rankitpro.utils.validators import ValidationError, is_valid_email, require_fields, require_choice

logger = logging.getLogger(__name__)


def _start_session(user: User, remember_me: bool = False) -> None:
    session.clear()
    session['user_id'] = user.id
    # without "remember me" the cookie ends with the browser session
    session.permanent = remember_me
    lifetime = REMEMBER_ME_LIFETIME if remember_me else SESSION_LIFETIME
    session['expires_at'] = (utcnow() + lifetime).timestamp()


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not is_valid_email(email) or not password:
        return jsonify({
            "error": "Invalid input",
            "details": [{"field": "email", "message": "A valid email and password are required"}],
        }), 400

    try:
        current = get_current_user()
        if current:
            return jsonify({
                "message": "Already logged in",
                "alreadyLoggedIn": True,
                "user": {"email": current.email, "role": current.role},
            })

        result = UserServiceSingleton.get_instance().authenticate(email, password)
        if 'error' in result:
            return jsonify({"error": result['error']}), 401

        user = result['user']
        _start_session(user, bool(data.get('rememberMe')))
        UserServiceSingleton.get_instance().record_login(user.id)
        logger.info(f"User {user.id} logged in")

        return jsonify({
            "user": user.to_public_dict(),
            "token": issue_token(user),
        })

    except Exception as e:
        logger.error(f"Error during login: {e}")
        return jsonify({"error": "Login failed"}), 500


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}

    try:
        require_fields(data, ['email', 'username', 'password', 'companyName'])
        if not is_valid_email(data['email']):
            raise ValidationError("Invalid email", [{"field": "email", "message": "must be a valid email"}])
        if len(data['username'].strip()) < MIN_USERNAME_LENGTH:
            raise ValidationError("Invalid username", [
                {"field": "username", "message": f"must be at least {MIN_USERNAME_LENGTH} characters"}
            ])
        if len(data['password']) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Invalid password", [
                {"field": "password", "message": f"must be at least {MIN_PASSWORD_LENGTH} characters"}
            ])
        plan = data.get('plan') or 'starter'
        require_choice(plan, PLANS, 'plan')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        user_service = UserServiceSingleton.get_instance()
        if user_service.get_by_email(data['email']):
            return jsonify({"error": "Email already in use"}), 400
        if user_service.get_by_username(data['username'].strip()):
            return jsonify({"error": "Username already taken"}), 400

        company = Company()
        company.name = data['companyName'].strip()
        company.plan = plan
        company = CompanyServiceSingleton.get_instance().create(company)

        user = User()
        user.email = data['email']
        user.username = data['username'].strip()
        user.role = Roles.COMPANY_ADMIN
        user.company_id = company.id
        user = user_service.create(user, raw_password=data['password'])

        _start_session(user)
        logger.info(f"Registered company {company.id} with admin user {user.id}")

        try:
            EmailServiceSingleton.get_instance().send_welcome_email(user.email, user.username, company.name)
        except Exception as e:
            logger.error(f"Failed to send welcome email to {user.email}: {e}")

        return jsonify({
            "user": user.to_public_dict(),
            "company": company.to_public_dict(),
            "token": issue_token(user),
        }), 201

    except Exception as e:
        logger.error(f"Error during registration: {e}")
        return jsonify({"error": "Registration failed"}), 500


@auth_bp.route('/logout', methods=['POST'])
def logout():
    user_id = session.get('user_id')
    session.clear()
    if user_id:
        logger.info(f"User {user_id} logged out")
    return jsonify({"message": "Logged out successfully"})


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify({"user": g.user.to_public_dict()})


@auth_bp.route('/change-password', methods=['POST'])
@require_auth
def change_password():
    data = request.get_json(silent=True) or {}
    current_password = data.get('currentPassword') or ''
    new_password = data.get('newPassword') or ''

    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            "error": "Invalid password",
            "details": [{"field": "newPassword", "message": f"must be at least {MIN_PASSWORD_LENGTH} characters"}],
        }), 400

    if not verify_password(g.user.password, current_password):
        return jsonify({"error": "Current password is incorrect"}), 400

    try:
        UserServiceSingleton.get_instance().set_password(g.user.id, new_password)
        logger.info(f"User {g.user.id} changed password")
        return jsonify({"message": "Password updated"})
    except Exception as e:
        logger.error(f"Error changing password for user {g.user.id}: {e}")
        return jsonify({"error": str(e)}), 500
