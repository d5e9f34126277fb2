"""
Admin Notification Service - emails company admins about activity in their account.

Every notification is best effort: a failure is logged and reported as
``False`` so the request that triggered it still succeeds.
"""

import logging
from typing import List, Optional

from rankitpro.models.check_in import CheckIn, BlogPost
from rankitpro.models.company import Company
from rankitpro.models.review import ReviewRequest

logger = logging.getLogger(__name__)


class AdminNotifier:
    """Send company admins notifications about check-ins, posts and review requests."""

    def __init__(self, company: Company):
        self.company = company
        self._email_service = None

    @property
    def email_service(self):
        """Lazy load email service."""
        if self._email_service is None:
            from rankitpro.email.email_service import EmailServiceSingleton
            self._email_service = EmailServiceSingleton.get_instance()
        return self._email_service

    def recipients(self) -> List[str]:
        from rankitpro.service.user_service import UserServiceSingleton
        admins = UserServiceSingleton.get_instance().get_company_admins(self.company.id)
        return [admin.email for admin in admins if admin.email and admin.active]

    def _notify_all(self, label: str, send) -> bool:
        sent_any = False
        try:
            for email in self.recipients():
                sent_any = bool(send(email)) or sent_any
        except Exception as e:
            logger.error(f"Failed to send {label} notification for company {self.company.id}: {e}")
            return False
        return sent_any

    def notify_check_in(self, check_in: CheckIn, technician_name: str) -> bool:
        return self._notify_all('check-in', lambda email: self.email_service.send_check_in_notification(
            email, self.company.name, technician_name, check_in.to_dict()
        ))

    def notify_blog_post(self, post: BlogPost) -> bool:
        return self._notify_all('blog post', lambda email: self.email_service.send_blog_post_notification(
            email, self.company.name, post.title, post.id
        ))

    def notify_review_request(self, request: ReviewRequest, technician_name: Optional[str], success: bool) -> bool:
        return self._notify_all('review request', lambda email: self.email_service.send_review_request_admin_notification(
            email, request.customer_name, technician_name or '', request.method, success
        ))
