from typing import Optional, List
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class SubscriptionPlan(BaseModel):
    def __init__(self):
        self.id: int = None
        self.name: str = None
        self.price: float = None
        self.yearly_price: Optional[float] = None
        self.billing_period: str = 'monthly'
        self.max_technicians: int = 5
        self.max_check_ins: int = 50
        self.features: List[str] = []
        self.is_active: bool = True
        self.stripe_product_id: Optional[str] = None
        self.stripe_price_id: Optional[str] = None
        self.stripe_yearly_price_id: Optional[str] = None
        self.created_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None
