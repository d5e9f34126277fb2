from typing import List, Optional
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class Testimonial(BaseModel):
    TYPES = ('audio', 'video')
    STATUSES = ('pending', 'approved', 'published', 'rejected')

    def __init__(self):
        self.id: int = None
        self.company_id: int = None
        self.technician_id: int = None
        self.check_in_id: Optional[int] = None
        self.customer_name: str = None
        self.customer_email: Optional[str] = None
        self.customer_phone: Optional[str] = None
        self.type: str = None
        self.title: str = None
        self.content: Optional[str] = None
        self.duration: Optional[int] = None
        self.original_file_name: Optional[str] = None
        self.file_size: Optional[int] = None
        self.mime_type: Optional[str] = None
        self.storage_url: str = None
        self.thumbnail_url: Optional[str] = None
        self.job_type: Optional[str] = None
        self.location: Optional[str] = None
        self.rating: Optional[int] = None
        self.status: str = 'pending'
        self.approved_at: Optional[datetime] = None
        self.published_at: Optional[datetime] = None
        self.is_public: bool = False
        self.show_on_website: bool = False
        self.tags: Optional[List[str]] = None
        self.created_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None


class TestimonialApproval(BaseModel):
    STATUSES = ('pending', 'approved', 'rejected')

    def __init__(self):
        self.id: int = None
        self.testimonial_id: int = None
        self.customer_email: str = None
        self.approval_token: str = None
        self.status: str = 'pending'
        self.approved_at: Optional[datetime] = None
        self.rejected_at: Optional[datetime] = None
        self.rejection_reason: Optional[str] = None
        self.email_sent_at: Optional[datetime] = None
        self.expires_at: datetime = None
        self.created_at: Optional[datetime] = None
