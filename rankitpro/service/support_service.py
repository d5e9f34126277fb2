from typing import List, Dict, Any, Optional
import secrets
import threading
import logging

from supabase import Client

from rankitpro.models.support_ticket import SupportTicket, SupportTicketResponse
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow, parse_datetime

logger = logging.getLogger(__name__)


class SupportServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SupportService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class SupportService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "support_tickets"
        self.responses_table = "support_ticket_responses"

    def generate_ticket_number(self) -> str:
        """SUP-YYYYMMDD-XXXX, unique across tickets."""
        prefix = f"SUP-{utcnow().strftime('%Y%m%d')}-"
        while True:
            number = prefix + secrets.token_hex(2).upper()
            existing = self.supabase.table(self.table_name).select('id').eq('ticket_number', number).execute()
            if not existing.data:
                return number

    def create(self, ticket: SupportTicket) -> SupportTicket:
        now = utcnow()
        ticket.ticket_number = ticket.ticket_number or self.generate_ticket_number()
        ticket.created_at = ticket.created_at or now
        ticket.updated_at = now

        result = self.supabase.table(self.table_name).insert(ticket.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            created = SupportTicket.from_dict(result.data[0])
            logger.info(f"Created ticket {created.ticket_number} for user {created.submitter_id}")
            return created
        return ticket

    def get_by_id(self, ticket_id: int) -> Optional[SupportTicket]:
        result = self.supabase.table(self.table_name).select('*').eq('id', ticket_id).execute()

        if result.data and len(result.data) > 0:
            return SupportTicket.from_dict(result.data[0])
        return None

    def list(
        self,
        company_id: Optional[int] = None,
        submitter_id: Optional[int] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
    ) -> List[SupportTicket]:
        query = self.supabase.table(self.table_name).select('*')
        if company_id:
            query = query.eq('company_id', company_id)
        if submitter_id:
            query = query.eq('submitter_id', submitter_id)
        if status:
            query = query.eq('status', status)
        if priority:
            query = query.eq('priority', priority)
        if assigned_to_id:
            query = query.eq('assigned_to_id', assigned_to_id)
        result = query.order('created_at', desc=True).execute()
        return [SupportTicket.from_dict(item) for item in (result.data or [])]

    def update(self, ticket_id: int, fields: Dict[str, Any]) -> Optional[SupportTicket]:
        fields = dict(fields)
        fields['updated_at'] = utcnow().isoformat()
        result = self.supabase.table(self.table_name).update(fields).eq('id', ticket_id).execute()

        if result.data and len(result.data) > 0:
            return SupportTicket.from_dict(result.data[0])
        return None

    def set_status(self, ticket_id: int, status: str, resolution: Optional[str] = None) -> Optional[SupportTicket]:
        fields: Dict[str, Any] = {'status': status}
        if status in ('resolved', 'closed'):
            fields['resolved_at'] = utcnow().isoformat()
        if resolution:
            fields['resolution'] = resolution
        return self.update(ticket_id, fields)

    # =========================================================================
    # Responses
    # =========================================================================

    def add_response(self, response: SupportTicketResponse) -> SupportTicketResponse:
        response.created_at = response.created_at or utcnow()
        result = self.supabase.table(self.responses_table).insert(response.to_dict(exclude_none=True)).execute()
        self.update(response.ticket_id, {})

        if result.data and len(result.data) > 0:
            return SupportTicketResponse.from_dict(result.data[0])
        return response

    def get_responses(self, ticket_id: int, include_internal: bool = False) -> List[SupportTicketResponse]:
        query = self.supabase.table(self.responses_table).select('*').eq('ticket_id', ticket_id)
        if not include_internal:
            query = query.eq('is_internal', False)
        result = query.order('created_at').execute()
        return [SupportTicketResponse.from_dict(item) for item in (result.data or [])]

    def get_stats(self) -> Dict[str, Any]:
        tickets = self.list()
        by_status = {status: 0 for status in SupportTicket.STATUSES}
        by_priority = {priority: 0 for priority in SupportTicket.PRIORITIES}
        resolution_hours = []

        for ticket in tickets:
            by_status[ticket.status] = by_status.get(ticket.status, 0) + 1
            by_priority[ticket.priority] = by_priority.get(ticket.priority, 0) + 1
            created = parse_datetime(ticket.created_at)
            resolved = parse_datetime(ticket.resolved_at)
            if created and resolved:
                resolution_hours.append((resolved - created).total_seconds() / 3600)

        resolved_count = by_status.get('resolved', 0) + by_status.get('closed', 0)
        return {
            'totalTickets': len(tickets),
            'byStatus': by_status,
            'byPriority': by_priority,
            'resolvedCount': resolved_count,
            'avgResolutionHours': round(sum(resolution_hours) / len(resolution_hours), 1) if resolution_hours else 0,
            'resolutionRate': round(resolved_count / len(tickets) * 100, 1) if tickets else 0,
        }
