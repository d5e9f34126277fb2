from flask import Blueprint

wordpress_bp = Blueprint('wordpress', __name__)

from rankitpro.wordpress import routes
