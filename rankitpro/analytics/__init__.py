"""
Analytics Module.
Dashboard statistics for every role.

- GET /api/analytics/company - Company totals and 30-day trends
- GET /api/analytics/technician - The caller's own technician dashboard
- GET /api/analytics/admin - System overview (super admin)
- GET /api/analytics/dashboard - Role-appropriate dashboard
"""

from flask import Blueprint

analytics_bp = Blueprint('analytics', __name__)

from rankitpro.analytics import routes
