"""Rank It Pro Flask application factory."""
import logging
from datetime import datetime

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from rankitpro.analytics import analytics_bp
from rankitpro.auth import auth_bp
from rankitpro.billing import billing_bp
from rankitpro.blog import blog_bp
from rankitpro.check_ins import check_ins_bp
from rankitpro.companies import companies_bp
from rankitpro.crm import crm_bp
from rankitpro.job_types import job_types_bp
from rankitpro.reviews import review_requests_bp, public_reviews_bp
from rankitpro.sales import sales_bp
from rankitpro.support import support_bp
from rankitpro.technicians import technicians_bp
from rankitpro.testimonials import testimonials_bp, testimonial_embed_bp
from rankitpro.users import users_bp
from rankitpro.webhook.stripe_webhook_handler import stripe_webhook
from rankitpro.wordpress import wordpress_bp
from rankitpro.utils.constants import Settings, REMEMBER_ME_LIFETIME

logger = logging.getLogger(__name__)

API_BLUEPRINTS = (
    (auth_bp, '/api/auth'),
    (companies_bp, '/api/companies'),
    (technicians_bp, '/api/technicians'),
    (job_types_bp, '/api/job-types'),
    (check_ins_bp, '/api/check-ins'),
    (blog_bp, '/api/blog-posts'),
    (review_requests_bp, '/api/review-requests'),
    (public_reviews_bp, '/api/reviews'),
    (billing_bp, '/api/billing'),
    (sales_bp, '/api/sales'),
    (wordpress_bp, '/api/wordpress'),
    (crm_bp, '/api/crm'),
    (users_bp, '/api/users'),
    (support_bp, '/api/support'),
    (testimonials_bp, '/api/testimonials'),
    (testimonial_embed_bp, '/api/embed'),
    (analytics_bp, '/api/analytics'),
)


def create_app(config=None) -> Flask:
    settings = Settings()
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.SECRET_KEY,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        SESSION_COOKIE_SECURE=settings.FRONTEND_URL.startswith('https://'),
        PERMANENT_SESSION_LIFETIME=REMEMBER_ME_LIFETIME,
    )
    if config:
        app.config.update(config)

    CORS(app, resources={r"/api/*": {
        "origins": [settings.FRONTEND_URL],
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        "allow_headers": ["Content-Type", "Authorization", "X-API-Key", "X-Requested-With"],
        "supports_credentials": True,
    }})

    for blueprint, url_prefix in API_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)

    # Blueprint already has url_prefix='/webhooks/stripe'
    app.register_blueprint(stripe_webhook)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.name, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"Unhandled error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/")
    def root():
        return jsonify({
            "status": "healthy",
            "message": f"{settings.APP_NAME} API Server",
            "timestamp": datetime.now().isoformat(),
        })

    @app.route("/health")
    def health():
        """
        Health check endpoint for load balancer monitoring.

        Returns 503 if the database is unreachable.
        """
        checks = {"server": "ok"}
        status_code = 200

        try:
            from rankitpro.database.supabase_client import SupabaseClientSingleton
            supabase = SupabaseClientSingleton.get_instance()
            supabase.table("companies").select("id").limit(1).execute()
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"error: {str(e)[:100]}"
            status_code = 503

        checks["timestamp"] = datetime.now().isoformat()
        return jsonify(checks), status_code

    return app
