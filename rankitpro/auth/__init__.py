"""
Authentication Module.

Session login, company registration, logout and current-user lookup.
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from rankitpro.auth import routes
