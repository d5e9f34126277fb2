"""
Authentication and role middleware for Rank It Pro.

Identity comes from the signed Flask session cookie (browser clients) or an
``Authorization: Bearer <jwt>`` header signed with SECRET_KEY (API and mobile
clients). The resolved user is loaded once per request into ``g.user``.

Usage:
    @require_auth
    def my_endpoint():
        user = g.user
        ...

    @require_company_admin
    def admin_endpoint():
        company_id = g.user.company_id
        ...
"""

import logging
from datetime import timedelta
from functools import wraps
from typing import Optional

import jwt
from flask import request, jsonify, g, session

from rankitpro.models.user import User
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles, Settings
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def issue_token(user: User) -> str:
    settings = Settings()
    now = utcnow()
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "company_id": user.company_id,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def _verify_jwt(token: str) -> Optional[dict]:
    """
    Verify a bearer token and return the decoded payload.

    Returns None if verification fails.
    """
    try:
        return jwt.decode(token, Settings().SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("JWT expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT validation failed: {e}")
        return None


def _extract_user_id_from_request() -> Optional[int]:
    """
    Resolve the caller's user id.

    Priority:
    1. Authorization: Bearer <jwt> header
    2. Flask session cookie
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = _verify_jwt(auth_header[7:])
        if payload and payload.get("sub"):
            g.auth_method = "jwt"
            try:
                return int(payload["sub"])
            except (TypeError, ValueError):
                return None

    user_id = session.get("user_id")
    if user_id:
        expires_at = session.get("expires_at")
        if expires_at and utcnow().timestamp() > expires_at:
            session.clear()
            return None
        g.auth_method = "session"
        return user_id

    return None


def get_current_user() -> Optional[User]:
    """Return the authenticated, active user for this request, or None."""
    if "user" in g:
        return g.user

    user = None
    user_id = _extract_user_id_from_request()
    if user_id:
        user = UserServiceSingleton.get_instance().get_by_id(user_id)
        if user and not user.active:
            logger.warning(f"Rejected request from deactivated user {user_id}")
            user = None
        if not user and g.get("auth_method") == "session":
            session.clear()

    g.user = user
    return user


def can_access_company(user: User, company_id) -> bool:
    """Super admins see every tenant; everyone else only their own company."""
    if user is None:
        return False
    if user.role == Roles.SUPER_ADMIN:
        return True
    try:
        return user.company_id is not None and int(company_id) == int(user.company_id)
    except (TypeError, ValueError):
        return False


def require_auth(f):
    """Reject unauthenticated requests with 401 and set ``g.user``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user:
            return jsonify({
                "error": "Authentication required",
                "code": "auth_required",
            }), 401
        g.user_id = user.id
        return f(*args, **kwargs)

    return decorated


def require_roles(*roles):
    """Allow only users whose role is in ``roles`` (403 otherwise)."""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated(*args, **kwargs):
            if g.user.role not in roles:
                logger.warning(f"User {g.user.id} ({g.user.role}) denied access to {request.path}")
                return jsonify({
                    "error": "Insufficient permissions",
                    "code": "forbidden",
                }), 403
            return f(*args, **kwargs)

        return decorated

    return decorator


require_super_admin = require_roles(Roles.SUPER_ADMIN)
require_company_admin = require_roles(Roles.COMPANY_ADMIN, Roles.SUPER_ADMIN)


def forbidden(message: str = "Access denied"):
    return jsonify({"error": message, "code": "forbidden"}), 403


def resolve_company_id(user: User):
    """
    The company a request operates on.

    Super admins may target any company with ``?company_id=``; everyone
    else is pinned to their own.
    """
    if user.role == Roles.SUPER_ADMIN:
        requested = request.args.get("company_id", type=int)
        if requested:
            return requested
    return user.company_id
