from typing import List, Dict, Any, Optional
import threading
import logging
from datetime import timedelta

from supabase import Client

from rankitpro.models.company import Company
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.constants import (
    Settings,
    PLAN_USAGE_LIMITS,
    DEFAULT_REVIEW_SETTINGS,
    DEFAULT_FEATURES,
)
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)

# Tables holding company-owned rows, in delete order
CASCADE_TABLES = [
    'blog_posts',
    'review_responses',
    'review_requests',
    'check_ins',
    'job_types',
    'technicians',
    'company_assignments',
    'sales_commissions',
    'support_tickets',
    'users',
]


class CompanyServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = CompanyService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class CompanyService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "companies"
        self.settings = Settings()

    def create(self, company: Company, start_trial: bool = True) -> Company:
        now = utcnow()
        if not company.created_at:
            company.created_at = now
        if company.usage_limit is None:
            company.usage_limit = PLAN_USAGE_LIMITS.get(company.plan, PLAN_USAGE_LIMITS['starter'])
        if company.review_settings is None:
            company.review_settings = dict(DEFAULT_REVIEW_SETTINGS)
        if company.features_enabled is None:
            company.features_enabled = dict(DEFAULT_FEATURES)
        if start_trial and not company.trial_end_date:
            company.trial_start_date = now
            company.trial_end_date = now + timedelta(days=self.settings.TRIAL_DURATION_DAYS)
            company.is_trial_active = True

        data = company.to_dict(exclude_none=True)
        result = self.supabase.table(self.table_name).insert(data).execute()

        if result.data and len(result.data) > 0:
            created = Company.from_dict(result.data[0])
            logger.info(f"Created company {created.id} ({created.name}) on plan {created.plan}")
            return created
        return company

    def get_by_id(self, company_id: int) -> Optional[Company]:
        result = self.supabase.table(self.table_name).select('*').eq('id', company_id).execute()

        if result.data and len(result.data) > 0:
            return Company.from_dict(result.data[0])
        return None

    def get_by_stripe_customer(self, customer_id: str) -> Optional[Company]:
        result = self.supabase.table(self.table_name).select('*').eq('stripe_customer_id', customer_id).execute()

        if result.data and len(result.data) > 0:
            return Company.from_dict(result.data[0])
        return None

    def get_by_wordpress_api_key(self, api_key: str) -> Optional[Company]:
        """Find the company whose WordPress connection uses ``api_key``."""
        if not api_key:
            return None
        result = self.supabase.table(self.table_name).select('*').eq('wordpress_api_key', api_key).execute()

        if result.data and len(result.data) > 0:
            return Company.from_dict(result.data[0])
        return None

    def get_all(self) -> List[Company]:
        result = self.supabase.table(self.table_name).select('*').order('created_at', desc=True).execute()
        return [Company.from_dict(item) for item in (result.data or [])]

    def update(self, company_id: int, fields: Dict[str, Any]) -> Optional[Company]:
        if not fields:
            return self.get_by_id(company_id)
        result = self.supabase.table(self.table_name).update(fields).eq('id', company_id).execute()

        if result.data and len(result.data) > 0:
            return Company.from_dict(result.data[0])
        return None

    def get_review_settings(self, company_id: int) -> Dict[str, Any]:
        company = self.get_by_id(company_id)
        settings = dict(DEFAULT_REVIEW_SETTINGS)
        if company and company.review_settings:
            settings.update(company.review_settings)
        return settings

    def delete(self, company_id: int) -> bool:
        """Delete a company and every row that belongs to it."""
        for table in CASCADE_TABLES:
            try:
                self.supabase.table(table).delete().eq('company_id', company_id).execute()
            except Exception as e:
                logger.error(f"Error deleting {table} rows for company {company_id}: {e}")
                raise

        result = self.supabase.table(self.table_name).delete().eq('id', company_id).execute()
        deleted = result.data is not None and len(result.data) > 0
        if deleted:
            logger.info(f"Deleted company {company_id} and its related records")
        return deleted
