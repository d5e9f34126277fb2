"""
Testimonial Service - recorded customer testimonials and their approval links.

A testimonial stays off the public embed until the customer approves it (or
the company approves it when no email was collected) and the company
publishes it.
"""

from typing import List, Dict, Any, Optional
from datetime import timedelta
import secrets
import threading
import logging

from supabase import Client

from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.models.company import Company
from rankitpro.models.testimonial import Testimonial, TestimonialApproval
from rankitpro.utils.constants import TESTIMONIAL_APPROVAL_DAYS
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)


class TestimonialServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = TestimonialService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class TestimonialService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "testimonials"
        self.approvals_table = "testimonial_approvals"

    # =========================================================================
    # Testimonials
    # =========================================================================

    def create(self, testimonial: Testimonial) -> Testimonial:
        now = utcnow()
        testimonial.created_at = now
        testimonial.updated_at = now
        if testimonial.tags is None:
            testimonial.tags = [testimonial.job_type] if testimonial.job_type else []

        result = self.supabase.table(self.table_name).insert(testimonial.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            return Testimonial.from_dict(result.data[0])
        return testimonial

    def get_by_id(self, testimonial_id: int) -> Optional[Testimonial]:
        result = self.supabase.table(self.table_name).select('*').eq('id', testimonial_id).execute()

        if result.data and len(result.data) > 0:
            return Testimonial.from_dict(result.data[0])
        return None

    def get_by_company(self, company_id: int, filters: Optional[Dict[str, Any]] = None) -> List[Testimonial]:
        query = self.supabase.table(self.table_name).select('*').eq('company_id', company_id)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        result = query.order('created_at', desc=True).execute()
        return [Testimonial.from_dict(item) for item in (result.data or [])]

    def set_status(self, testimonial_id: int, status: str) -> Optional[Testimonial]:
        """Move a testimonial through its lifecycle; publishing makes it public."""
        now = utcnow().isoformat()
        fields: Dict[str, Any] = {'status': status, 'updated_at': now}
        if status in ('approved', 'published'):
            fields['approved_at'] = now
        if status == 'published':
            fields['published_at'] = now
            fields['is_public'] = True
            fields['show_on_website'] = True
        elif status == 'rejected':
            fields['is_public'] = False
            fields['show_on_website'] = False

        result = self.supabase.table(self.table_name).update(fields).eq('id', testimonial_id).execute()

        if result.data and len(result.data) > 0:
            logger.info(f"Testimonial {testimonial_id} is now {status}")
            return Testimonial.from_dict(result.data[0])
        return None

    def get_published(
        self,
        company_id: int,
        media_type: Optional[str] = None,
        location: Optional[str] = None,
        service: Optional[str] = None,
        limit: int = 5,
    ) -> List[Testimonial]:
        """Published, public testimonials for the embed widget."""
        filters = {'status': 'published', 'is_public': True}
        if media_type:
            filters['type'] = media_type
        testimonials = self.get_by_company(company_id, filters)

        if location:
            needle = location.lower()
            testimonials = [t for t in testimonials if needle in (t.location or '').lower()]
        if service:
            needle = service.lower()
            testimonials = [
                t for t in testimonials
                if needle in (t.job_type or '').lower() or any(needle in tag.lower() for tag in (t.tags or []))
            ]
        return testimonials[:limit]

    # =========================================================================
    # Customer approvals
    # =========================================================================

    def create_approval(self, testimonial: Testimonial) -> TestimonialApproval:
        approval = TestimonialApproval()
        approval.testimonial_id = testimonial.id
        approval.customer_email = testimonial.customer_email
        approval.approval_token = secrets.token_hex(32)
        approval.email_sent_at = utcnow()
        approval.expires_at = utcnow() + timedelta(days=TESTIMONIAL_APPROVAL_DAYS)
        approval.created_at = utcnow()

        result = self.supabase.table(self.approvals_table).insert(approval.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            return TestimonialApproval.from_dict(result.data[0])
        return approval

    def get_approval_by_token(self, token: str) -> Optional[TestimonialApproval]:
        result = self.supabase.table(self.approvals_table).select('*').eq('approval_token', token).execute()

        if result.data and len(result.data) > 0:
            return TestimonialApproval.from_dict(result.data[0])
        return None

    def resolve_approval(
        self,
        approval: TestimonialApproval,
        approved: bool,
        reason: Optional[str] = None,
    ) -> Optional[Testimonial]:
        """Record the customer's decision on both the approval and the testimonial."""
        now = utcnow().isoformat()
        if approved:
            fields = {'status': 'approved', 'approved_at': now}
        else:
            fields = {'status': 'rejected', 'rejected_at': now, 'rejection_reason': reason}
        self.supabase.table(self.approvals_table).update(fields).eq('id', approval.id).execute()

        return self.set_status(approval.testimonial_id, fields['status'])

    def send_approval_request(self, testimonial: Testimonial, company: Company) -> Optional[TestimonialApproval]:
        """Create an approval link and email it; delivery failures are logged, not raised."""
        if not testimonial.customer_email:
            return None

        approval = self.create_approval(testimonial)
        try:
            sent = EmailServiceSingleton.get_instance().send_testimonial_approval_email(
                testimonial.customer_email,
                testimonial.customer_name,
                company.name,
                testimonial.title,
                approval.approval_token,
            )
            if not sent:
                logger.warning(f"Approval email for testimonial {testimonial.id} was not delivered")
        except Exception as e:
            logger.error(f"Error sending approval email for testimonial {testimonial.id}: {e}")
        return approval
