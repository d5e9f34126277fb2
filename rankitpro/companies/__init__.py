from flask import Blueprint

companies_bp = Blueprint('companies', __name__)

from rankitpro.companies import routes
