from typing import Optional, Dict, Any
from datetime import datetime

from rankitpro.models.base_model import BaseModel
from rankitpro.utils.constants import Roles


class User(BaseModel):
    def __init__(self):
        self.id: int = None
        self.email: str = None
        self.username: str = None
        self.password: str = None
        self.role: str = Roles.TECHNICIAN
        self.company_id: Optional[int] = None
        self.stripe_customer_id: Optional[str] = None
        self.stripe_subscription_id: Optional[str] = None
        self.active: bool = True
        self.notification_preferences: Optional[Dict[str, Any]] = None
        self.last_login_at: Optional[datetime] = None
        self.created_at: Optional[datetime] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == Roles.SUPER_ADMIN

    @property
    def is_company_admin(self) -> bool:
        return self.role in (Roles.COMPANY_ADMIN, Roles.SUPER_ADMIN)

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize without the password hash."""
        data = self.to_dict()
        data.pop('password', None)
        return data
