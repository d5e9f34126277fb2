"""
Email Module.
Provides email sending functionality with templates.

Functions:
- send_welcome_email - New company admin welcome
- send_check_in_notification - Technician visit logged
- send_blog_post_notification - Generated post ready for review
- send_review_request - Customer review request and follow-ups
- send_trial_expired_email - Trial ended
- send_ticket_created_email / send_ticket_update_email - Support tickets
"""

from rankitpro.email.email_service import EmailService, EmailServiceSingleton

__all__ = [
    'EmailService',
    'EmailServiceSingleton',
]
