from typing import Optional, List
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class CheckIn(BaseModel):
    def __init__(self):
        self.id: int = None
        self.job_type: str = None
        self.notes: Optional[str] = None
        self.customer_name: Optional[str] = None
        self.customer_email: Optional[str] = None
        self.customer_phone: Optional[str] = None
        self.work_performed: Optional[str] = None
        self.materials_used: Optional[str] = None
        self.latitude: Optional[float] = None
        self.longitude: Optional[float] = None
        self.location: Optional[str] = None
        self.address: Optional[str] = None
        self.city: Optional[str] = None
        self.state: Optional[str] = None
        self.zip: Optional[str] = None
        self.photos: List[str] = []
        self.before_photos: List[str] = []
        self.after_photos: List[str] = []
        self.problem_description: Optional[str] = None
        self.solution_description: Optional[str] = None
        self.follow_up_required: bool = False
        self.follow_up_notes: Optional[str] = None
        self.is_blog: bool = False
        self.generated_content: Optional[str] = None
        self.is_deleted: bool = False
        self.technician_id: int = None
        self.company_id: int = None
        self.created_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None

    def full_address(self) -> str:
        parts = [self.address, self.city, self.state, self.zip]
        return ', '.join(p for p in parts if p) or (self.location or '')


class BlogPost(BaseModel):
    STATUSES = ('draft', 'published', 'scheduled')

    def __init__(self):
        self.id: int = None
        self.title: str = None
        self.content: str = None
        self.excerpt: Optional[str] = None
        self.status: str = 'draft'
        self.publish_date: Optional[datetime] = None
        self.tags: List[str] = []
        self.seo_title: Optional[str] = None
        self.seo_description: Optional[str] = None
        self.photos: List[str] = []
        self.publish_to_wordpress: bool = False
        self.wordpress_post_id: Optional[int] = None
        self.check_in_id: Optional[int] = None
        self.company_id: int = None
        self.created_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None
