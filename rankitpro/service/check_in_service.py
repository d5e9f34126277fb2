from typing import List, Dict, Any, Optional
from datetime import datetime
import threading
import logging

from supabase import Client

from rankitpro.models.check_in import CheckIn
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)

# Fields a client may set or change on a check-in
EDITABLE_FIELDS = (
    'job_type', 'notes', 'customer_name', 'customer_email', 'customer_phone',
    'work_performed', 'materials_used', 'latitude', 'longitude', 'location',
    'address', 'city', 'state', 'zip', 'photos', 'before_photos', 'after_photos',
    'problem_description', 'solution_description', 'follow_up_required',
    'follow_up_notes',
)


class CheckInServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = CheckInService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class CheckInService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "check_ins"

    def create(self, check_in: CheckIn) -> CheckIn:
        now = utcnow()
        if not check_in.created_at:
            check_in.created_at = now
        check_in.updated_at = now

        result = self.supabase.table(self.table_name).insert(check_in.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            created = CheckIn.from_dict(result.data[0])
            logger.info(f"Check-in {created.id} recorded for technician {created.technician_id}")
            return created
        return check_in

    def get_by_id(self, check_in_id: int, include_deleted: bool = False) -> Optional[CheckIn]:
        result = self.supabase.table(self.table_name).select('*').eq('id', check_in_id).execute()

        if result.data and len(result.data) > 0:
            check_in = CheckIn.from_dict(result.data[0])
            if check_in.is_deleted and not include_deleted:
                return None
            return check_in
        return None

    def get_by_company(
        self,
        company_id: int,
        limit: Optional[int] = None,
        technician_id: Optional[int] = None,
    ) -> List[CheckIn]:
        query = (
            self.supabase.table(self.table_name)
            .select('*')
            .eq('company_id', company_id)
            .eq('is_deleted', False)
        )
        if technician_id:
            query = query.eq('technician_id', technician_id)
        query = query.order('created_at', desc=True)
        if limit:
            query = query.limit(limit)
        result = query.execute()
        return [CheckIn.from_dict(item) for item in (result.data or [])]

    def count_between(
        self,
        company_id: int,
        start: datetime,
        end: Optional[datetime] = None,
        technician_id: Optional[int] = None,
    ) -> int:
        query = (
            self.supabase.table(self.table_name)
            .select('id', count='exact')
            .eq('company_id', company_id)
            .eq('is_deleted', False)
            .gte('created_at', start.isoformat())
        )
        if end:
            query = query.lt('created_at', end.isoformat())
        if technician_id:
            query = query.eq('technician_id', technician_id)
        return query.execute().count or 0

    def update(self, check_in_id: int, fields: Dict[str, Any]) -> Optional[CheckIn]:
        fields = dict(fields)
        fields['updated_at'] = utcnow().isoformat()
        result = self.supabase.table(self.table_name).update(fields).eq('id', check_in_id).execute()

        if result.data and len(result.data) > 0:
            return CheckIn.from_dict(result.data[0])
        return None

    def delete(self, check_in_id: int) -> bool:
        return self.update(check_in_id, {'is_deleted': True}) is not None
