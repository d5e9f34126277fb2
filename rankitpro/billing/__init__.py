from flask import Blueprint

billing_bp = Blueprint('billing', __name__)

from rankitpro.billing import routes
