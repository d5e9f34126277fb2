from typing import List, Dict, Any, Optional
import threading
import logging

from supabase import Client

from rankitpro.models.technician import Technician
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)


class TechnicianServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = TechnicianService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class TechnicianService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "technicians"

    def create(self, technician: Technician) -> Technician:
        if not technician.created_at:
            technician.created_at = utcnow()
        if technician.email:
            technician.email = technician.email.strip().lower()

        data = technician.to_dict(exclude_none=True)
        result = self.supabase.table(self.table_name).insert(data).execute()

        if result.data and len(result.data) > 0:
            created = Technician.from_dict(result.data[0])
            logger.info(f"Created technician {created.id} for company {created.company_id}")
            return created
        return technician

    def get_by_id(self, technician_id: int) -> Optional[Technician]:
        result = self.supabase.table(self.table_name).select('*').eq('id', technician_id).execute()

        if result.data and len(result.data) > 0:
            return Technician.from_dict(result.data[0])
        return None

    def get_by_user_id(self, user_id: int) -> Optional[Technician]:
        result = self.supabase.table(self.table_name).select('*').eq('user_id', user_id).execute()

        if result.data and len(result.data) > 0:
            return Technician.from_dict(result.data[0])
        return None

    def get_by_email(self, company_id: int, email: str) -> Optional[Technician]:
        result = (
            self.supabase.table(self.table_name)
            .select('*')
            .eq('company_id', company_id)
            .eq('email', email.strip().lower())
            .execute()
        )

        if result.data and len(result.data) > 0:
            return Technician.from_dict(result.data[0])
        return None

    def get_by_company(self, company_id: int, active_only: bool = True) -> List[Technician]:
        query = self.supabase.table(self.table_name).select('*').eq('company_id', company_id)
        if active_only:
            query = query.eq('active', True)
        result = query.order('name').execute()
        return [Technician.from_dict(item) for item in (result.data or [])]

    def get_all(self) -> List[Technician]:
        result = self.supabase.table(self.table_name).select('*').order('name').execute()
        return [Technician.from_dict(item) for item in (result.data or [])]

    def count_active(self, company_id: int) -> int:
        result = (
            self.supabase.table(self.table_name)
            .select('id', count='exact')
            .eq('company_id', company_id)
            .eq('active', True)
            .execute()
        )
        return result.count or 0

    def update(self, technician_id: int, fields: Dict[str, Any]) -> Optional[Technician]:
        if not fields:
            return self.get_by_id(technician_id)
        result = self.supabase.table(self.table_name).update(fields).eq('id', technician_id).execute()

        if result.data and len(result.data) > 0:
            return Technician.from_dict(result.data[0])
        return None

    def deactivate(self, technician_id: int) -> bool:
        return self.update(technician_id, {'active': False}) is not None

    def get_stats(self, company_id: int) -> List[Dict[str, Any]]:
        """Per-technician check-in count, review count and average rating."""
        technicians = self.get_by_company(company_id, active_only=False)

        check_ins = (
            self.supabase.table('check_ins')
            .select('technician_id')
            .eq('company_id', company_id)
            .eq('is_deleted', False)
            .execute()
        ).data or []
        responses = (
            self.supabase.table('review_responses')
            .select('technician_id, rating')
            .eq('company_id', company_id)
            .execute()
        ).data or []

        stats = []
        for tech in technicians:
            ratings = [r['rating'] for r in responses if r.get('technician_id') == tech.id and r.get('rating')]
            stats.append({
                **tech.to_dict(),
                'checkinsCount': sum(1 for c in check_ins if c.get('technician_id') == tech.id),
                'reviewsCount': len(ratings),
                'rating': round(sum(ratings) / len(ratings), 1) if ratings else 0,
            })
        return stats
