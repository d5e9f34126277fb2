from typing import Optional
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class SupportTicket(BaseModel):
    STATUSES = ('open', 'in_progress', 'waiting', 'resolved', 'closed')
    PRIORITIES = ('low', 'medium', 'high', 'urgent')
    CATEGORIES = ('general', 'billing', 'technical', 'feature_request', 'bug_report')

    def __init__(self):
        self.id: int = None
        self.ticket_number: str = None
        self.company_id: Optional[int] = None
        self.submitter_id: int = None
        self.subject: str = None
        self.description: str = None
        self.category: str = 'general'
        self.priority: str = 'medium'
        self.status: str = 'open'
        self.assigned_to_id: Optional[int] = None
        self.resolution: Optional[str] = None
        self.resolved_at: Optional[datetime] = None
        self.created_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None


class SupportTicketResponse(BaseModel):
    def __init__(self):
        self.id: int = None
        self.ticket_id: int = None
        self.responder_id: int = None
        self.responder_name: Optional[str] = None
        self.responder_type: str = 'customer'
        self.message: str = None
        self.is_internal: bool = False
        self.created_at: Optional[datetime] = None
