from typing import List, Dict, Any, Optional
import threading

from supabase import Client

from rankitpro.models.technician import JobType
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow


class JobTypeServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = JobTypeService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class JobTypeService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "job_types"

    def create(self, job_type: JobType) -> JobType:
        if not job_type.created_at:
            job_type.created_at = utcnow()
        result = self.supabase.table(self.table_name).insert(job_type.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            return JobType.from_dict(result.data[0])
        return job_type

    def get_by_id(self, job_type_id: int) -> Optional[JobType]:
        result = self.supabase.table(self.table_name).select('*').eq('id', job_type_id).execute()

        if result.data and len(result.data) > 0:
            return JobType.from_dict(result.data[0])
        return None

    def get_by_name(self, company_id: int, name: str) -> Optional[JobType]:
        for job_type in self.get_by_company(company_id, active_only=False):
            if job_type.name.strip().lower() == name.strip().lower():
                return job_type
        return None

    def get_by_company(self, company_id: int, active_only: bool = True) -> List[JobType]:
        query = self.supabase.table(self.table_name).select('*').eq('company_id', company_id)
        if active_only:
            query = query.eq('is_active', True)
        result = query.order('name').execute()
        return [JobType.from_dict(item) for item in (result.data or [])]

    def update(self, job_type_id: int, fields: Dict[str, Any]) -> Optional[JobType]:
        result = self.supabase.table(self.table_name).update(fields).eq('id', job_type_id).execute()

        if result.data and len(result.data) > 0:
            return JobType.from_dict(result.data[0])
        return None
