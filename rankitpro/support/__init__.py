from flask import Blueprint

support_bp = Blueprint('support', __name__)

from rankitpro.support import routes
