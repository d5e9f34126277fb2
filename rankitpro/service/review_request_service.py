from typing import List, Dict, Any, Optional
from datetime import timedelta
import secrets
import threading
import logging

from supabase import Client

from rankitpro.models.review import ReviewRequest, ReviewResponse
from rankitpro.models.company import Company
from rankitpro.models.technician import Technician
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.notifications.admin_notifier import AdminNotifier
from rankitpro.service.sms_service import SmsServiceSingleton
from rankitpro.utils.constants import DEFAULT_REVIEW_SETTINGS
from rankitpro.utils.dates import utcnow, parse_datetime

logger = logging.getLogger(__name__)


class ReviewRequestServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ReviewRequestService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class ReviewRequestService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "review_requests"
        self.responses_table = "review_responses"

    # =========================================================================
    # Requests
    # =========================================================================

    def create(self, request: ReviewRequest) -> ReviewRequest:
        if not request.token:
            request.token = secrets.token_urlsafe(24)
        if not request.created_at:
            request.created_at = utcnow()

        result = self.supabase.table(self.table_name).insert(request.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            return ReviewRequest.from_dict(result.data[0])
        return request

    def get_by_id(self, request_id: int) -> Optional[ReviewRequest]:
        result = self.supabase.table(self.table_name).select('*').eq('id', request_id).execute()

        if result.data and len(result.data) > 0:
            return ReviewRequest.from_dict(result.data[0])
        return None

    def get_by_token(self, token: str) -> Optional[ReviewRequest]:
        result = self.supabase.table(self.table_name).select('*').eq('token', token).execute()

        if result.data and len(result.data) > 0:
            return ReviewRequest.from_dict(result.data[0])
        return None

    def get_by_company(self, company_id: int) -> List[ReviewRequest]:
        result = (
            self.supabase.table(self.table_name)
            .select('*')
            .eq('company_id', company_id)
            .order('created_at', desc=True)
            .execute()
        )
        return [ReviewRequest.from_dict(item) for item in (result.data or [])]

    def count_between(self, company_id: int, start, end=None) -> int:
        query = (
            self.supabase.table(self.table_name)
            .select('id', count='exact')
            .eq('company_id', company_id)
            .gte('created_at', start.isoformat())
        )
        if end:
            query = query.lt('created_at', end.isoformat())
        return query.execute().count or 0

    def update(self, request_id: int, fields: Dict[str, Any]) -> Optional[ReviewRequest]:
        result = self.supabase.table(self.table_name).update(fields).eq('id', request_id).execute()

        if result.data and len(result.data) > 0:
            return ReviewRequest.from_dict(result.data[0])
        return None

    def deliver(
        self,
        request: ReviewRequest,
        company: Company,
        technician: Optional[Technician],
        include_technician_name: bool = True,
        follow_up: bool = False,
    ) -> bool:
        """Send a request over its method and return whether it went out."""
        technician_name = technician.name if (technician and include_technician_name) else None

        if request.method == 'sms':
            sms = SmsServiceSingleton.get_instance()
            email_service = EmailServiceSingleton.get_instance()
            return sms.send_review_request(
                request.phone,
                request.customer_name,
                company.name,
                technician_name,
                email_service.review_url(request.token),
                custom_message=request.custom_message,
                follow_up=follow_up,
            )

        return EmailServiceSingleton.get_instance().send_review_request(
            request.email,
            request.customer_name,
            company.name,
            technician_name,
            request.job_type,
            request.token,
            custom_message=request.custom_message,
            follow_up=follow_up,
        )

    def send(
        self,
        request: ReviewRequest,
        company: Company,
        technician: Optional[Technician],
        include_technician_name: bool = True,
    ) -> ReviewRequest:
        """Deliver a request and record ``sent`` or ``failed``."""
        try:
            success = self.deliver(request, company, technician, include_technician_name)
        except Exception as e:
            logger.error(f"Error delivering review request {request.id}: {e}")
            success = False

        fields = {'status': 'sent' if success else 'failed'}
        if success:
            fields['sent_at'] = utcnow().isoformat()
        updated = self.update(request.id, fields)
        logger.info(f"Review request {request.id} via {request.method}: {fields['status']}")
        return updated or request

    def create_and_send(
        self,
        company: Company,
        technician: Optional[Technician],
        customer_name: str,
        method: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        job_type: Optional[str] = None,
        custom_message: Optional[str] = None,
        check_in_id: Optional[int] = None,
    ) -> ReviewRequest:
        """Create a request, send it and tell the company admins how it went."""
        settings = {**DEFAULT_REVIEW_SETTINGS, **(company.review_settings or {})}

        request = ReviewRequest()
        request.customer_name = customer_name
        request.email = email
        request.phone = phone
        request.method = method
        request.job_type = job_type if settings.get('includeJobDetails', True) else None
        request.custom_message = custom_message
        request.technician_id = technician.id if technician else None
        request.company_id = company.id
        request.check_in_id = check_in_id
        request = self.create(request)

        request = self.send(request, company, technician, settings.get('includeTechnicianName', True))
        AdminNotifier(company).notify_review_request(
            request, technician.name if technician else None, request.status == 'sent'
        )
        return request

    def send_follow_up(
        self,
        request: ReviewRequest,
        company: Company,
        technician: Optional[Technician],
        include_technician_name: bool = True,
    ) -> bool:
        success = self.deliver(request, company, technician, include_technician_name, follow_up=True)
        if success:
            self.update(request.id, {
                'follow_up_count': (request.follow_up_count or 0) + 1,
                'last_follow_up_at': utcnow().isoformat(),
            })
        return success

    def get_due_follow_ups(self, company_id: int, delay_days: int, max_follow_ups: int) -> List[ReviewRequest]:
        """Sent, unanswered requests whose last contact is older than ``delay_days``."""
        cutoff = utcnow() - timedelta(days=delay_days)
        result = (
            self.supabase.table(self.table_name)
            .select('*')
            .eq('company_id', company_id)
            .eq('status', 'sent')
            .lt('follow_up_count', max_follow_ups)
            .execute()
        )

        due = []
        for item in result.data or []:
            request = ReviewRequest.from_dict(item)
            if request.completed_at:
                continue
            last_contact = parse_datetime(request.last_follow_up_at) or parse_datetime(request.sent_at)
            if last_contact and last_contact <= cutoff:
                due.append(request)
        return due

    # =========================================================================
    # Responses
    # =========================================================================

    def get_response_for_request(self, request_id: int) -> Optional[ReviewResponse]:
        result = self.supabase.table(self.responses_table).select('*').eq('review_request_id', request_id).execute()

        if result.data and len(result.data) > 0:
            return ReviewResponse.from_dict(result.data[0])
        return None

    def record_response(
        self,
        request: ReviewRequest,
        rating: int,
        feedback: Optional[str] = None,
        public_display: bool = False,
    ) -> ReviewResponse:
        now = utcnow()
        response = ReviewResponse()
        response.review_request_id = request.id
        response.rating = rating
        response.feedback = feedback
        response.customer_name = request.customer_name
        response.technician_id = request.technician_id
        response.company_id = request.company_id
        response.public_display = public_display
        response.responded_at = now
        response.created_at = now

        result = self.supabase.table(self.responses_table).insert(response.to_dict(exclude_none=True)).execute()
        self.update(request.id, {'completed_at': now.isoformat()})

        if result.data and len(result.data) > 0:
            return ReviewResponse.from_dict(result.data[0])
        return response

    def get_responses(self, company_id: int, public_only: bool = False) -> List[ReviewResponse]:
        query = self.supabase.table(self.responses_table).select('*').eq('company_id', company_id)
        if public_only:
            query = query.eq('public_display', True)
        result = query.order('created_at', desc=True).execute()
        return [ReviewResponse.from_dict(item) for item in (result.data or [])]

    def get_stats(self, company_id: int) -> Dict[str, Any]:
        requests = self.get_by_company(company_id)
        responses = self.get_responses(company_id)

        week_ago = utcnow() - timedelta(days=7)
        sent = [r for r in requests if r.status == 'sent']
        failed = [r for r in requests if r.status == 'failed']
        sent_this_week = [r for r in sent if parse_datetime(r.sent_at) and parse_datetime(r.sent_at) >= week_ago]
        ratings = [r.rating for r in responses if r.rating]
        sent_dates = [parse_datetime(r.sent_at) for r in sent if r.sent_at]

        return {
            'totalSent': len(requests),
            'sentThisWeek': len(sent_this_week),
            'successfulSent': len(sent),
            'failedSent': len(failed),
            'responseRate': round(len(responses) / len(requests) * 100) if requests else 0,
            'averageRating': round(sum(ratings) / len(ratings), 1) if ratings else 0,
            'totalResponses': len(responses),
            'positiveReviews': sum(1 for rating in ratings if rating >= 4),
            'lastSent': max(sent_dates).isoformat() if sent_dates else None,
        }
