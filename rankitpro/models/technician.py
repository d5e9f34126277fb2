from typing import Optional
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class Technician(BaseModel):
    def __init__(self):
        self.id: int = None
        self.name: str = None
        self.email: str = None
        self.phone: Optional[str] = None
        self.specialty: Optional[str] = None
        self.location: Optional[str] = None
        self.user_id: Optional[int] = None
        self.company_id: int = None
        self.active: bool = True
        self.created_at: Optional[datetime] = None


class JobType(BaseModel):
    def __init__(self):
        self.id: int = None
        self.name: str = None
        self.description: Optional[str] = None
        self.company_id: int = None
        self.is_active: bool = True
        self.created_at: Optional[datetime] = None
