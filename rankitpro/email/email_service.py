"""
Email Service.
Handles sending notification and review emails with templates via SMTP.
"""

import os
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any
from flask import render_template_string
from datetime import datetime

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails with templates."""

    def __init__(self):
        self.smtp_server = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
        self.smtp_port = int(os.environ.get('MAIL_PORT', 587))
        self.smtp_username = os.environ.get('MAIL_USERNAME', '')
        self.smtp_password = os.environ.get('MAIL_PASSWORD', '')
        self.use_tls = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
        self.default_sender = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@rankitpro.com')
        self.app_name = os.environ.get('APP_NAME', 'Rank It Pro')
        self.frontend_url = os.environ.get('FRONTEND_URL', 'http://localhost:5173')

    def _get_smtp_connection(self):
        """Create SMTP connection."""
        try:
            server = smtplib.SMTP(self.smtp_server, self.smtp_port)
            if self.use_tls:
                server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            return server
        except Exception as e:
            logger.error(f"Failed to connect to SMTP server: {e}")
            raise

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_email: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns:
            bool: True if sent successfully
        """
        if not to_email:
            logger.warning(f"Skipping email '{subject}': no recipient")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = from_email or self.default_sender
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with self._get_smtp_connection() as server:
                server.sendmail(msg['From'], [to_email], msg.as_string())

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def review_url(self, token: str) -> str:
        return f"{self.frontend_url}/review/{token}"

    def send_welcome_email(self, to_email: str, user_name: str, company_name: str) -> bool:
        """Send welcome email to a newly registered company admin."""
        subject = f"Welcome to {self.app_name}!"
        html_content = self._render_template('welcome', {
            'user_name': user_name,
            'company_name': company_name,
            'login_url': f"{self.frontend_url}/login",
        })
        return self.send_email(to_email, subject, html_content)

    def send_check_in_notification(
        self,
        to_email: str,
        company_name: str,
        technician_name: str,
        check_in: Dict[str, Any]
    ) -> bool:
        """Tell a company admin that a technician logged a visit."""
        subject = f"New check-in: {check_in.get('job_type')} by {technician_name}"
        html_content = self._render_template('check_in', {
            'company_name': company_name,
            'technician_name': technician_name,
            'job_type': check_in.get('job_type'),
            'location': check_in.get('address') or check_in.get('location'),
            'notes': check_in.get('notes'),
            'customer_name': check_in.get('customer_name'),
            'dashboard_url': f"{self.frontend_url}/check-ins/{check_in.get('id')}",
        })
        return self.send_email(to_email, subject, html_content)

    def send_blog_post_notification(self, to_email: str, company_name: str, title: str, post_id: int) -> bool:
        subject = f"New blog post ready for review: {title}"
        html_content = self._render_template('blog_post', {
            'company_name': company_name,
            'title': title,
            'post_url': f"{self.frontend_url}/blog-posts/{post_id}",
        })
        return self.send_email(to_email, subject, html_content)

    def send_review_request(
        self,
        to_email: str,
        customer_name: str,
        company_name: str,
        technician_name: Optional[str],
        job_type: Optional[str],
        token: str,
        custom_message: Optional[str] = None,
        follow_up: bool = False
    ) -> bool:
        """Ask a customer to rate their service visit."""
        if follow_up:
            subject = f"Reminder: how did we do, {customer_name}?"
        else:
            subject = f"How was your service from {company_name}?"
        html_content = self._render_template('review_request', {
            'customer_name': customer_name,
            'company_name': company_name,
            'technician_name': technician_name,
            'job_type': job_type,
            'custom_message': custom_message,
            'follow_up': follow_up,
            'review_url': self.review_url(token),
        })
        text_content = (
            f"Hi {customer_name},\n\nThank you for choosing {company_name}. "
            f"Please take a moment to rate your service: {self.review_url(token)}"
        )
        return self.send_email(to_email, subject, html_content, text_content)

    def send_review_request_admin_notification(
        self,
        to_email: str,
        customer_name: str,
        technician_name: str,
        method: str,
        success: bool
    ) -> bool:
        subject = f"Review request {'sent' if success else 'failed'}: {customer_name}"
        html_content = self._render_template('review_admin', {
            'customer_name': customer_name,
            'technician_name': technician_name,
            'method': method,
            'success': success,
            'dashboard_url': f"{self.frontend_url}/reviews",
        })
        return self.send_email(to_email, subject, html_content)

    def testimonial_approval_url(self, token: str) -> str:
        return f"{self.frontend_url}/testimonials/approve/{token}"

    def send_testimonial_approval_email(
        self,
        to_email: str,
        customer_name: str,
        company_name: str,
        title: str,
        token: str
    ) -> bool:
        """Ask a customer to approve a recorded testimonial before it is shown publicly."""
        subject = f"{company_name} would like to share your testimonial"
        html_content = self._render_template('testimonial_approval', {
            'customer_name': customer_name,
            'company_name': company_name,
            'title': title,
            'approval_url': self.testimonial_approval_url(token),
        })
        return self.send_email(to_email, subject, html_content)

    def send_trial_expired_email(self, to_email: str, company_name: str) -> bool:
        subject = f"Your {self.app_name} trial has ended"
        html_content = self._render_template('trial_expired', {
            'company_name': company_name,
            'billing_url': f"{self.frontend_url}/billing",
        })
        return self.send_email(to_email, subject, html_content)

    def send_ticket_created_email(self, to_email: str, ticket_number: str, subject: str, priority: str) -> bool:
        email_subject = f"[{self.app_name}] New ticket {ticket_number}: {subject}"
        html_content = self._render_template('ticket_created', {
            'ticket_number': ticket_number,
            'ticket_subject': subject,
            'priority': priority,
            'ticket_url': f"{self.frontend_url}/admin/support",
        })
        return self.send_email(to_email, email_subject, html_content)

    def send_ticket_update_email(
        self,
        to_email: str,
        ticket_number: str,
        ticket_subject: str,
        new_status: str,
        note: Optional[str] = None
    ) -> bool:
        """Send ticket status update to the submitter."""
        subject = f"Ticket {ticket_number} Updated - {self.app_name}"
        html_content = self._render_template('ticket_update', {
            'ticket_number': ticket_number,
            'ticket_subject': ticket_subject,
            'new_status': new_status.replace('_', ' ').title(),
            'note': note,
            'ticket_url': f"{self.frontend_url}/support",
        })
        return self.send_email(to_email, subject, html_content)

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a body template and wrap it in the shared layout."""
        templates = {
            'welcome': WELCOME_TEMPLATE,
            'check_in': CHECK_IN_TEMPLATE,
            'blog_post': BLOG_POST_TEMPLATE,
            'review_request': REVIEW_REQUEST_TEMPLATE,
            'review_admin': REVIEW_ADMIN_TEMPLATE,
            'testimonial_approval': TESTIMONIAL_APPROVAL_TEMPLATE,
            'trial_expired': TRIAL_EXPIRED_TEMPLATE,
            'ticket_created': TICKET_CREATED_TEMPLATE,
            'ticket_update': TICKET_UPDATE_TEMPLATE,
        }

        context = dict(context, app_name=self.app_name, year=datetime.now().year, button_style=BUTTON_STYLE)
        body = render_template_string(templates.get(template_name, ''), **context)
        return render_template_string(LAYOUT_TEMPLATE, body=body, **context)


class EmailServiceSingleton:
    """Singleton for EmailService."""

    _instance: Optional[EmailService] = None

    @classmethod
    def get_instance(cls) -> EmailService:
        if cls._instance is None:
            cls._instance = EmailService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None


# =============================================================================
# Email Templates
# =============================================================================

LAYOUT_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ app_name }}</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: #f4f4f5;">
    <table role="presentation" style="width: 100%; border-collapse: collapse;">
        <tr>
            <td align="center" style="padding: 40px 0;">
                <table role="presentation" style="width: 600px; max-width: 100%; border-collapse: collapse; background-color: #ffffff; border-radius: 8px;">
                    <tr>
                        <td style="padding: 30px 40px; text-align: center; background: #1e40af; border-radius: 8px 8px 0 0;">
                            <h1 style="margin: 0; color: #ffffff; font-size: 24px;">{{ company_name or app_name }}</h1>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 40px; font-size: 16px; line-height: 1.6; color: #374151;">
                            {{ body|safe }}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 20px 40px; background-color: #f9fafb; border-radius: 0 0 8px 8px; text-align: center;">
                            <p style="margin: 0; font-size: 13px; color: #6b7280;">
                                &copy; {{ year }} {{ app_name }}
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""

BUTTON_STYLE = (
    'display: inline-block; padding: 12px 28px; background: #1e40af; color: #ffffff; '
    'text-decoration: none; border-radius: 6px; font-weight: 600;'
)

WELCOME_TEMPLATE = """
<p>Hi {{ user_name }},</p>
<p>Your {{ app_name }} account for <strong>{{ company_name }}</strong> is ready. Your free trial has started.</p>
<ul>
    <li>Add your technicians</li>
    <li>Log check-ins from the field</li>
    <li>Turn visits into blog posts and review requests</li>
</ul>
<p style="text-align: center;"><a href="{{ login_url }}" style="{{ button_style }}">Go to Dashboard</a></p>
"""

CHECK_IN_TEMPLATE = """
<p><strong>{{ technician_name }}</strong> just completed a <strong>{{ job_type }}</strong> visit.</p>
{% if customer_name %}<p>Customer: {{ customer_name }}</p>{% endif %}
{% if location %}<p>Location: {{ location }}</p>{% endif %}
{% if notes %}<p style="background: #f9fafb; padding: 12px; border-radius: 6px;">{{ notes }}</p>{% endif %}
<p style="text-align: center;"><a href="{{ dashboard_url }}" style="{{ button_style }}">View Check-in</a></p>
"""

BLOG_POST_TEMPLATE = """
<p>A new blog post was generated from a recent visit:</p>
<h2 style="font-size: 20px;">{{ title }}</h2>
<p style="text-align: center;"><a href="{{ post_url }}" style="{{ button_style }}">Review Post</a></p>
"""

REVIEW_REQUEST_TEMPLATE = """
<p>Hi {{ customer_name }},</p>
{% if follow_up %}
<p>We'd still love to hear how your recent service went.</p>
{% else %}
<p>Thank you for choosing {{ company_name }}{% if technician_name %}. {{ technician_name }} recently completed your {{ job_type or 'service' }}{% endif %}.</p>
{% endif %}
{% if custom_message %}<p>{{ custom_message }}</p>{% endif %}
<p>It only takes a minute to leave a rating:</p>
<p style="text-align: center;"><a href="{{ review_url }}" style="{{ button_style }}">Rate Your Service</a></p>
"""

REVIEW_ADMIN_TEMPLATE = """
<p>A review request to <strong>{{ customer_name }}</strong> via {{ method }}
{% if success %}was sent{% else %}could not be delivered{% endif %}.</p>
<p>Technician: {{ technician_name }}</p>
<p style="text-align: center;"><a href="{{ dashboard_url }}" style="{{ button_style }}">View Reviews</a></p>
"""

TESTIMONIAL_APPROVAL_TEMPLATE = """
<p>Hi {{ customer_name }},</p>
<p>Thank you for recording a testimonial for {{ company_name }}: <strong>{{ title }}</strong>.</p>
<p>We will only show it on our website once you approve it. The link expires in 7 days.</p>
<p style="text-align: center;"><a href="{{ approval_url }}" style="{{ button_style }}">Review Testimonial</a></p>
"""

TRIAL_EXPIRED_TEMPLATE = """
<p>The free trial for <strong>{{ company_name }}</strong> has ended.</p>
<p>Choose a plan to keep logging check-ins, publishing posts and collecting reviews.</p>
<p style="text-align: center;"><a href="{{ billing_url }}" style="{{ button_style }}">Choose a Plan</a></p>
"""

TICKET_CREATED_TEMPLATE = """
<p>Support ticket <strong>{{ ticket_number }}</strong> was opened.</p>
<p>Subject: {{ ticket_subject }}<br>Priority: {{ priority }}</p>
<p style="text-align: center;"><a href="{{ ticket_url }}" style="{{ button_style }}">Open Ticket</a></p>
"""

TICKET_UPDATE_TEMPLATE = """
<p>Your ticket <strong>{{ ticket_number }}</strong> ({{ ticket_subject }}) is now <strong>{{ new_status }}</strong>.</p>
{% if note %}<p style="background: #f9fafb; padding: 12px; border-radius: 6px;">{{ note }}</p>{% endif %}
<p style="text-align: center;"><a href="{{ ticket_url }}" style="{{ button_style }}">View Ticket</a></p>
"""
