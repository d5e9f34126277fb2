import base64
import logging
from html import escape as html_escape
from typing import Dict, Any, Optional, List

import requests

from rankitpro.models.check_in import CheckIn, BlogPost

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15


class WordPressError(Exception):
    pass


class WordPressClient:
    """Minimal client for the WordPress REST API using application passwords."""

    def __init__(self, site_url: str, username: str, application_password: str) -> None:
        if not site_url:
            raise WordPressError("WordPress site URL is not configured")
        self.site_url = site_url.rstrip('/')
        self.base_url = f"{self.site_url}/wp-json/wp/v2"
        token = base64.b64encode(f"{username}:{application_password}".encode()).decode()
        self.headers = {
            'Content-Type': "application/json",
            'Authorization': f"Basic {token}",
        }

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> 'WordPressClient':
        config = config or {}
        return cls(
            config.get('site_url'),
            config.get('username', ''),
            config.get('application_password', ''),
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = requests.request(method, url, headers=self.headers, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise WordPressError(f"Could not reach {self.site_url}: {e}")

        if response.status_code >= 400:
            raise WordPressError(f"WordPress returned {response.status_code}: {response.text[:200]}")
        return response.json()

    def test_connection(self) -> Dict[str, Any]:
        """Return the authenticated WordPress user."""
        user = self._request('GET', 'users/me')
        return {'id': user.get('id'), 'name': user.get('name')}

    def get_categories(self) -> List[Dict[str, Any]]:
        categories = self._request('GET', 'categories', params={'per_page': 100})
        return [{'id': c.get('id'), 'name': c.get('name')} for c in categories]

    def create_post(
        self,
        title: str,
        content: str,
        status: str = 'publish',
        excerpt: Optional[str] = None,
        categories: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'title': title,
            'content': content,
            'status': status,
        }
        if excerpt:
            payload['excerpt'] = excerpt
        if categories:
            payload['categories'] = categories

        post = self._request('POST', 'posts', json=payload)
        logger.info(f"Published WordPress post {post.get('id')} to {self.site_url}")
        return {'id': post.get('id'), 'link': post.get('link'), 'status': post.get('status')}


def _categories(config: Dict[str, Any]) -> Optional[List[int]]:
    category = config.get('default_category')
    if category in (None, ''):
        return None
    try:
        return [int(category)]
    except (TypeError, ValueError):
        return None


def publish_blog_post(config: Dict[str, Any], post: BlogPost) -> Dict[str, Any]:
    client = WordPressClient.from_config(config)
    return client.create_post(
        post.title,
        post.content,
        status=config.get('post_status', 'publish'),
        excerpt=post.excerpt,
        categories=_categories(config),
    )


def check_in_html(check_in: CheckIn, technician_name: str, include_photos: bool = True) -> str:
    parts = [f"<p><strong>Technician:</strong> {html_escape(technician_name)}</p>"]
    location = check_in.full_address()
    if location:
        parts.append(f"<p><strong>Location:</strong> {html_escape(location)}</p>")
    if check_in.work_performed:
        parts.append(f"<p>{html_escape(check_in.work_performed)}</p>")
    elif check_in.notes:
        parts.append(f"<p>{html_escape(check_in.notes)}</p>")
    if include_photos:
        for url in check_in.photos or []:
            parts.append(f'<img src="{html_escape(url)}" alt="{html_escape(check_in.job_type)}" />')
    return "\n".join(parts)


def publish_check_in(config: Dict[str, Any], check_in: CheckIn, technician_name: str) -> Dict[str, Any]:
    client = WordPressClient.from_config(config)
    title = f"{check_in.job_type}" + (f" in {check_in.city}" if check_in.city else "")
    return client.create_post(
        title,
        check_in_html(check_in, technician_name, config.get('include_photos', True)),
        status=config.get('post_status', 'publish'),
        categories=_categories(config),
    )
