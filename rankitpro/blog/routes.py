"""
Blog Post API Routes.

- GET /api/blog-posts - List the company's posts (?status=)
- POST /api/blog-posts - Create a post
- GET/PUT/DELETE /api/blog-posts/<id>
- POST /api/blog-posts/<id>/publish - Publish, pushing to WordPress when connected
- POST /api/blog-posts/generate/<check_in_id> - Draft a post from a check-in
"""

import logging

from flask import request, jsonify, g

from rankitpro.blog import blog_bp
from rankitpro.middleware.auth import require_auth, require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.middleware.subscription_check import require_active_subscription
from rankitpro.models.check_in import BlogPost
from rankitpro.notifications.admin_notifier import AdminNotifier
from rankitpro.service.blog_post_service import BlogPostServiceSingleton
from rankitpro.service.check_in_service import CheckInServiceSingleton
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.usage_service import check_limit
from rankitpro.service.wordpress_service import publish_blog_post, WordPressError
from rankitpro.utils.dates import utcnow
from rankitpro.utils.validators import ValidationError, require_fields, require_choice

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'title', 'content', 'excerpt', 'status', 'publish_date', 'tags',
    'seo_title', 'seo_description', 'photos', 'publish_to_wordpress',
)


def _post_fields(data):
    fields = {}
    for key, value in data.items():
        name = BlogPost.snake_case(key)
        if name in UPDATABLE_FIELDS:
            fields[name] = value
    return fields


def _load_post(post_id):
    post = BlogPostServiceSingleton.get_instance().get_by_id(post_id)
    if not post:
        return None, (jsonify({"error": "Blog post not found"}), 404)
    if not can_access_company(g.user, post.company_id):
        return None, forbidden("Access denied to this blog post")
    return post, None


@blog_bp.route('', methods=['GET'])
@require_auth
def list_blog_posts():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return jsonify([])

    try:
        posts = BlogPostServiceSingleton.get_instance().get_by_company(company_id, request.args.get('status'))
        return jsonify([p.to_dict() for p in posts])
    except Exception as e:
        logger.error(f"Error listing blog posts: {e}")
        return jsonify({"error": str(e)}), 500


@blog_bp.route('/<int:post_id>', methods=['GET'])
@require_auth
def get_blog_post(post_id):
    post, error = _load_post(post_id)
    if error:
        return error
    return jsonify(post.to_dict())


@blog_bp.route('', methods=['POST'])
@require_active_subscription
def create_blog_post():
    data = request.get_json(silent=True) or {}
    fields = _post_fields(data)

    try:
        require_fields(fields, ['title', 'content'])
        require_choice(fields.get('status', 'draft'), BlogPost.STATUSES, 'status')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    company_id = g.user.company_id
    if g.user.is_super_admin:
        company_id = data.get('companyId') or company_id
    company = g.get('company') or CompanyServiceSingleton.get_instance().get_by_id(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404

    limit_error = check_limit(company, 'blogPosts')
    if limit_error:
        return jsonify(limit_error), 403

    try:
        post = BlogPost.from_dict(fields)
        post.company_id = company.id
        post.check_in_id = data.get('checkInId')
        post = BlogPostServiceSingleton.get_instance().create(post)
        return jsonify(post.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating blog post: {e}")
        return jsonify({"error": str(e)}), 500


@blog_bp.route('/<int:post_id>', methods=['PUT', 'PATCH'])
@require_active_subscription
def update_blog_post(post_id):
    post, error = _load_post(post_id)
    if error:
        return error

    fields = _post_fields(request.get_json(silent=True) or {})
    try:
        if 'status' in fields:
            require_choice(fields['status'], BlogPost.STATUSES, 'status')
        for required in ('title', 'content'):
            if required in fields and not (fields[required] or '').strip():
                raise ValidationError(f"{required} cannot be empty")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = BlogPostServiceSingleton.get_instance().update(post_id, fields)
        return jsonify(updated.to_dict())
    except Exception as e:
        logger.error(f"Error updating blog post {post_id}: {e}")
        return jsonify({"error": str(e)}), 500


@blog_bp.route('/<int:post_id>', methods=['DELETE'])
@require_company_admin
def delete_blog_post(post_id):
    post, error = _load_post(post_id)
    if error:
        return error

    BlogPostServiceSingleton.get_instance().delete(post.id)
    return jsonify({"message": "Blog post deleted"})


@blog_bp.route('/<int:post_id>/publish', methods=['POST'])
@require_active_subscription
def publish_post(post_id):
    post, error = _load_post(post_id)
    if error:
        return error

    fields = {'status': 'published', 'publish_date': utcnow().isoformat()}
    result = {}

    company = CompanyServiceSingleton.get_instance().get_by_id(post.company_id)
    wp_config = (company.wordpress_config if company else None) or {}
    if wp_config.get('site_url') and wp_config.get('enabled', True):
        try:
            remote = publish_blog_post(wp_config, post)
            fields['wordpress_post_id'] = remote.get('id')
            fields['publish_to_wordpress'] = True
            result['wordpress'] = remote
        except WordPressError as e:
            logger.error(f"WordPress publish failed for post {post.id}: {e}")
            result['wordpressError'] = str(e)

    updated = BlogPostServiceSingleton.get_instance().update(post.id, fields)
    result['post'] = updated.to_dict()
    return jsonify(result)


@blog_bp.route('/generate/<int:check_in_id>', methods=['POST'])
@require_active_subscription
def generate_from_check_in(check_in_id):
    check_in = CheckInServiceSingleton.get_instance().get_by_id(check_in_id)
    if not check_in:
        return jsonify({"error": "Check-in not found"}), 404
    if not can_access_company(g.user, check_in.company_id):
        return forbidden("Access denied to this check-in")

    company = CompanyServiceSingleton.get_instance().get_by_id(check_in.company_id)
    limit_error = check_limit(company, 'blogPosts')
    if limit_error:
        return jsonify(limit_error), 403

    technician = TechnicianServiceSingleton.get_instance().get_by_id(check_in.technician_id)
    technician_name = technician.name if technician else "Our technician"

    try:
        post = BlogPostServiceSingleton.get_instance().create_from_check_in(check_in, technician_name, company.name)
    except Exception as e:
        logger.error(f"Error generating blog post from check-in {check_in_id}: {e}")
        return jsonify({"error": str(e)}), 500

    AdminNotifier(company).notify_blog_post(post)
    return jsonify(post.to_dict()), 201
