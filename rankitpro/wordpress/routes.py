"""
WordPress Integration API Routes.

Company admin:
- GET/POST /api/wordpress/config - Connection settings (password masked)
- POST /api/wordpress/test-connection - Verify credentials against the site
- POST /api/wordpress/publish/check-in/<id> - Post a visit to the site
- POST /api/wordpress/publish/blog-post/<id> - Post a blog post to the site
- GET /api/wordpress/plugin-config - Connection manifest for the site plugin

Public:
- GET /api/wordpress/public/visits?apiKey=&limit= - Recent visits for embedding
"""

import logging
import secrets

from flask import request, jsonify, g

from rankitpro.wordpress import wordpress_bp
from rankitpro.middleware.auth import require_company_admin, can_access_company, resolve_company_id, forbidden
from rankitpro.service.blog_post_service import BlogPostServiceSingleton
from rankitpro.service.check_in_service import CheckInServiceSingleton
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.wordpress_service import (
    WordPressClient,
    WordPressError,
    publish_blog_post,
    publish_check_in,
)
from rankitpro.utils.constants import Settings
from rankitpro.utils.validators import ValidationError, require_choice

logger = logging.getLogger(__name__)

MASK = '********'
POST_STATUSES = ('publish', 'draft', 'pending')
MAX_PUBLIC_VISITS = 50


def _current_company():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return None
    return CompanyServiceSingleton.get_instance().get_by_id(company_id)


def _config_response(config, api_key=None):
    config = config or {}
    return {
        'siteUrl': config.get('site_url'),
        'username': config.get('username'),
        'applicationPassword': MASK if config.get('application_password') else None,
        'postStatus': config.get('post_status', 'publish'),
        'defaultCategory': config.get('default_category'),
        'autoPublish': config.get('auto_publish', False),
        'includePhotos': config.get('include_photos', True),
        'enabled': config.get('enabled', bool(config.get('site_url'))),
        'hasApiKey': bool(api_key),
    }


def _configured(config) -> bool:
    return bool(config and config.get('site_url') and config.get('enabled', True))


@wordpress_bp.route('/config', methods=['GET'])
@require_company_admin
def get_config():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(_config_response(company.wordpress_config, company.wordpress_api_key))


@wordpress_bp.route('/config', methods=['POST', 'PUT'])
@require_company_admin
def save_config():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    data = request.get_json(silent=True) or {}
    config = dict(company.wordpress_config or {})

    try:
        site_url = (data.get('siteUrl') or config.get('site_url') or '').strip()
        if not site_url.startswith(('http://', 'https://')):
            raise ValidationError("Invalid siteUrl", [{'field': 'siteUrl', 'message': 'must start with http:// or https://'}])
        config['site_url'] = site_url.rstrip('/')

        if 'postStatus' in data:
            require_choice(data['postStatus'], POST_STATUSES, 'postStatus')
            config['post_status'] = data['postStatus']
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    if 'username' in data:
        config['username'] = (data['username'] or '').strip()
    # the masked placeholder keeps the stored password
    if data.get('applicationPassword') and data['applicationPassword'] != MASK:
        config['application_password'] = data['applicationPassword']
    if 'defaultCategory' in data:
        config['default_category'] = data['defaultCategory']
    for key, column in (('autoPublish', 'auto_publish'), ('includePhotos', 'include_photos'), ('enabled', 'enabled')):
        if key in data:
            config[column] = bool(data[key])

    CompanyServiceSingleton.get_instance().update(company.id, {'wordpress_config': config})
    logger.info(f"WordPress config saved for company {company.id}")
    return jsonify(_config_response(config, company.wordpress_api_key))


@wordpress_bp.route('/test-connection', methods=['POST'])
@require_company_admin
def test_connection():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    data = request.get_json(silent=True) or {}
    config = dict(company.wordpress_config or {})
    if data.get('siteUrl'):
        config['site_url'] = data['siteUrl']
    if data.get('username'):
        config['username'] = data['username']
    if data.get('applicationPassword') and data['applicationPassword'] != MASK:
        config['application_password'] = data['applicationPassword']

    try:
        user = WordPressClient.from_config(config).test_connection()
        return jsonify({'success': True, 'user': user})
    except WordPressError as e:
        logger.warning(f"WordPress connection test failed for company {company.id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400


@wordpress_bp.route('/publish/check-in/<int:check_in_id>', methods=['POST'])
@require_company_admin
def publish_check_in_route(check_in_id):
    check_in = CheckInServiceSingleton.get_instance().get_by_id(check_in_id)
    if not check_in:
        return jsonify({"error": "Check-in not found"}), 404
    if not can_access_company(g.user, check_in.company_id):
        return forbidden("Access denied to this check-in")

    company = CompanyServiceSingleton.get_instance().get_by_id(check_in.company_id)
    if not _configured(company.wordpress_config):
        return jsonify({"error": "WordPress is not configured"}), 400

    technician = TechnicianServiceSingleton.get_instance().get_by_id(check_in.technician_id)
    try:
        remote = publish_check_in(company.wordpress_config, check_in, technician.name if technician else "Our technician")
        return jsonify({'success': True, 'post': remote})
    except WordPressError as e:
        logger.error(f"WordPress publish failed for check-in {check_in_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 502


@wordpress_bp.route('/publish/blog-post/<int:post_id>', methods=['POST'])
@require_company_admin
def publish_blog_post_route(post_id):
    blog_service = BlogPostServiceSingleton.get_instance()
    post = blog_service.get_by_id(post_id)
    if not post:
        return jsonify({"error": "Blog post not found"}), 404
    if not can_access_company(g.user, post.company_id):
        return forbidden("Access denied to this blog post")

    company = CompanyServiceSingleton.get_instance().get_by_id(post.company_id)
    if not _configured(company.wordpress_config):
        return jsonify({"error": "WordPress is not configured"}), 400

    try:
        remote = publish_blog_post(company.wordpress_config, post)
    except WordPressError as e:
        logger.error(f"WordPress publish failed for blog post {post_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 502

    blog_service.update(post.id, {'wordpress_post_id': remote.get('id'), 'publish_to_wordpress': True})
    return jsonify({'success': True, 'post': remote})


@wordpress_bp.route('/plugin-config', methods=['GET'])
@require_company_admin
def plugin_config():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    api_key = company.wordpress_api_key
    if not api_key:
        config = dict(company.wordpress_config or {})
        # keys issued before the dedicated column lived in wordpress_config
        api_key = config.pop('api_key', None) or secrets.token_urlsafe(32)
        CompanyServiceSingleton.get_instance().update(company.id, {
            'wordpress_api_key': api_key,
            'wordpress_config': config or None,
        })
        logger.info(f"Stored WordPress API key for company {company.id}")

    return jsonify({
        'apiEndpoint': f"{Settings().API_BASE_URL.rstrip('/')}/api/wordpress/public/visits",
        'companyId': company.id,
        'companyName': company.name,
        'apiKey': api_key,
    })


@wordpress_bp.route('/public/visits', methods=['GET'])
def public_visits():
    api_key = request.args.get('apiKey') or request.headers.get('X-API-Key')
    if not api_key:
        return jsonify({"error": "API key is required"}), 401

    company = CompanyServiceSingleton.get_instance().get_by_wordpress_api_key(api_key)
    if not company:
        return jsonify({"error": "Invalid API key"}), 401

    limit = max(1, min(request.args.get('limit', 10, type=int), MAX_PUBLIC_VISITS))
    include_photos = (company.wordpress_config or {}).get('include_photos', True)

    check_ins = CheckInServiceSingleton.get_instance().get_by_company(company.id, limit=limit)
    technicians = TechnicianServiceSingleton.get_instance().get_by_company(company.id, active_only=False)
    names = {t.id: t.name for t in technicians}

    # customer details never leave the API
    return jsonify({
        'company': company.name,
        'visits': [
            {
                'id': c.id,
                'jobType': c.job_type,
                'city': c.city,
                'state': c.state,
                'workPerformed': c.work_performed,
                'technicianName': names.get(c.technician_id),
                'photos': (c.photos or []) if include_photos else [],
                'createdAt': c.to_dict().get('created_at'),
            }
            for c in check_ins
        ],
    })
