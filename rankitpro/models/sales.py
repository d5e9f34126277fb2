from typing import Optional
from datetime import datetime

from rankitpro.models.base_model import BaseModel


class SalesPerson(BaseModel):
    def __init__(self):
        self.id: int = None
        self.user_id: int = None
        self.name: str = None
        self.email: str = None
        self.phone: Optional[str] = None
        self.commission_rate: float = 0.10
        self.is_active: bool = True
        self.total_earnings: float = 0
        self.pending_commissions: float = 0
        self.created_at: Optional[datetime] = None


class CompanyAssignment(BaseModel):
    def __init__(self):
        self.id: int = None
        self.sales_person_id: int = None
        self.company_id: int = None
        self.signup_date: Optional[datetime] = None
        self.subscription_plan: Optional[str] = None
        self.initial_plan_price: Optional[float] = None
        self.current_plan_price: Optional[float] = None
        self.billing_period: str = 'monthly'
        self.status: str = 'active'
        self.created_at: Optional[datetime] = None


class SalesCommission(BaseModel):
    TYPES = ('signup', 'renewal', 'setup', 'bonus')
    STATUSES = ('pending', 'approved', 'paid', 'disputed')

    def __init__(self):
        self.id: int = None
        self.sales_person_id: int = None
        self.company_id: int = None
        self.subscription_id: Optional[str] = None
        self.amount: float = None
        self.commission_rate: float = None
        self.base_amount: float = None
        self.billing_period: str = 'monthly'
        self.type: str = 'renewal'
        self.status: str = 'pending'
        self.is_paid: bool = False
        self.paid_at: Optional[datetime] = None
        self.payment_date: Optional[datetime] = None
        self.commission_month: Optional[str] = None
        self.created_at: Optional[datetime] = None
