from flask import Blueprint

job_types_bp = Blueprint('job_types', __name__)

from rankitpro.job_types import routes
