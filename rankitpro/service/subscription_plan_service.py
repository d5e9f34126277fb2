from typing import List, Dict, Any, Optional
import threading
import logging

from supabase import Client

from rankitpro.models.subscription_plan import SubscriptionPlan
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)


class SubscriptionPlanServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SubscriptionPlanService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class SubscriptionPlanService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "subscription_plans"

    def create(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        now = utcnow()
        plan.created_at = plan.created_at or now
        plan.updated_at = now
        result = self.supabase.table(self.table_name).insert(plan.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            created = SubscriptionPlan.from_dict(result.data[0])
            logger.info(f"Created subscription plan {created.id} ({created.name})")
            return created
        return plan

    def get_by_id(self, plan_id: int) -> Optional[SubscriptionPlan]:
        result = self.supabase.table(self.table_name).select('*').eq('id', plan_id).execute()

        if result.data and len(result.data) > 0:
            return SubscriptionPlan.from_dict(result.data[0])
        return None

    def get_all(self, active_only: bool = False) -> List[SubscriptionPlan]:
        query = self.supabase.table(self.table_name).select('*')
        if active_only:
            query = query.eq('is_active', True)
        result = query.order('price').execute()
        return [SubscriptionPlan.from_dict(item) for item in (result.data or [])]

    def update(self, plan_id: int, fields: Dict[str, Any]) -> Optional[SubscriptionPlan]:
        fields = dict(fields)
        fields['updated_at'] = utcnow().isoformat()
        result = self.supabase.table(self.table_name).update(fields).eq('id', plan_id).execute()

        if result.data and len(result.data) > 0:
            return SubscriptionPlan.from_dict(result.data[0])
        return None

    def deactivate(self, plan_id: int) -> bool:
        return self.update(plan_id, {'is_active': False}) is not None

    def count_subscribers(self, plan_id: int) -> int:
        result = (
            self.supabase.table('companies')
            .select('id', count='exact')
            .eq('subscription_plan_id', plan_id)
            .execute()
        )
        return result.count or 0
