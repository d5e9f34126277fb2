from flask import Blueprint

testimonials_bp = Blueprint('testimonials', __name__)
testimonial_embed_bp = Blueprint('testimonial_embed', __name__)

from rankitpro.testimonials import routes
