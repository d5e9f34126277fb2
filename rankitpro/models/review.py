from typing import Optional
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class ReviewRequest(BaseModel):
    METHODS = ('email', 'sms')
    STATUSES = ('pending', 'sent', 'failed')

    def __init__(self):
        self.id: int = None
        self.customer_name: str = None
        self.email: Optional[str] = None
        self.phone: Optional[str] = None
        self.method: str = 'email'
        self.job_type: Optional[str] = None
        self.custom_message: Optional[str] = None
        self.token: str = None
        self.status: str = 'pending'
        self.sent_at: Optional[datetime] = None
        self.follow_up_count: int = 0
        self.last_follow_up_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.technician_id: int = None
        self.company_id: int = None
        self.check_in_id: Optional[int] = None
        self.created_at: Optional[datetime] = None


class ReviewResponse(BaseModel):
    def __init__(self):
        self.id: int = None
        self.review_request_id: int = None
        self.rating: int = None
        self.feedback: Optional[str] = None
        self.customer_name: Optional[str] = None
        self.technician_id: Optional[int] = None
        self.company_id: int = None
        self.public_display: bool = False
        self.responded_at: Optional[datetime] = None
        self.created_at: Optional[datetime] = None
