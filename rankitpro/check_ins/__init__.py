from flask import Blueprint

check_ins_bp = Blueprint('check_ins', __name__)

from rankitpro.check_ins import routes
