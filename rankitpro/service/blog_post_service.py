from typing import List, Dict, Any, Optional
from datetime import datetime
import threading

from supabase import Client

from rankitpro.models.check_in import BlogPost, CheckIn
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.service.content_service import ContentServiceSingleton
from rankitpro.utils.dates import utcnow


class BlogPostServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = BlogPostService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


def make_excerpt(content: str, length: int = 160) -> str:
    text = ' '.join((content or '').split())
    if len(text) <= length:
        return text
    return text[:length].rsplit(' ', 1)[0] + '...'


class BlogPostService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "blog_posts"

    def create(self, post: BlogPost) -> BlogPost:
        now = utcnow()
        if not post.created_at:
            post.created_at = now
        post.updated_at = now
        if not post.excerpt:
            post.excerpt = make_excerpt(post.content)

        result = self.supabase.table(self.table_name).insert(post.to_dict(exclude_none=True)).execute()

        if result.data and len(result.data) > 0:
            return BlogPost.from_dict(result.data[0])
        return post

    def get_by_id(self, post_id: int) -> Optional[BlogPost]:
        result = self.supabase.table(self.table_name).select('*').eq('id', post_id).execute()

        if result.data and len(result.data) > 0:
            return BlogPost.from_dict(result.data[0])
        return None

    def get_by_company(self, company_id: int, status: Optional[str] = None) -> List[BlogPost]:
        query = self.supabase.table(self.table_name).select('*').eq('company_id', company_id)
        if status:
            query = query.eq('status', status)
        result = query.order('created_at', desc=True).execute()
        return [BlogPost.from_dict(item) for item in (result.data or [])]

    def count_between(self, company_id: int, start: datetime, end: Optional[datetime] = None) -> int:
        query = (
            self.supabase.table(self.table_name)
            .select('id', count='exact')
            .eq('company_id', company_id)
            .gte('created_at', start.isoformat())
        )
        if end:
            query = query.lt('created_at', end.isoformat())
        return query.execute().count or 0

    def update(self, post_id: int, fields: Dict[str, Any]) -> Optional[BlogPost]:
        fields = dict(fields)
        fields['updated_at'] = utcnow().isoformat()
        result = self.supabase.table(self.table_name).update(fields).eq('id', post_id).execute()

        if result.data and len(result.data) > 0:
            return BlogPost.from_dict(result.data[0])
        return None

    def delete(self, post_id: int) -> bool:
        result = self.supabase.table(self.table_name).delete().eq('id', post_id).execute()
        return result.data is not None and len(result.data) > 0

    def create_from_check_in(self, check_in: CheckIn, technician_name: str, company_name: str = "") -> BlogPost:
        """Generate a draft post describing a visit and flag the check-in as blogged."""
        generated = ContentServiceSingleton.get_instance().generate_blog_post(check_in, technician_name, company_name)

        post = BlogPost()
        post.title = generated['title']
        post.content = generated['content']
        post.status = 'draft'
        post.photos = list(check_in.photos or [])
        post.check_in_id = check_in.id
        post.company_id = check_in.company_id
        post = self.create(post)

        self.supabase.table('check_ins').update({
            'is_blog': True,
            'generated_content': post.content,
        }).eq('id', check_in.id).execute()
        return post
