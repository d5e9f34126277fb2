from flask import Blueprint

review_requests_bp = Blueprint('review_requests', __name__)
public_reviews_bp = Blueprint('public_reviews', __name__)

from rankitpro.reviews import routes, public_routes
