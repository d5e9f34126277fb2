from flask import Blueprint

technicians_bp = Blueprint('technicians', __name__)

from rankitpro.technicians import routes
