from typing import List, Dict, Any, Optional
import re
import threading
import logging

from supabase import Client
from werkzeug.security import generate_password_hash, check_password_hash

from rankitpro.models.user import User
from rankitpro.database.supabase_client import SupabaseClientSingleton
from rankitpro.utils.dates import utcnow

logger = logging.getLogger(__name__)


class UserServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = UserService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash or not password:
        return False
    try:
        return check_password_hash(password_hash, password)
    except ValueError:
        # Unknown hash format stored for this user
        return False


class UserService:
    def __init__(self):
        self.supabase: Client = SupabaseClientSingleton.get_instance()
        self.table_name = "users"

    def create(self, user: User, raw_password: Optional[str] = None) -> User:
        if raw_password is not None:
            user.password = hash_password(raw_password)
        if not user.created_at:
            user.created_at = utcnow()
        if user.email:
            user.email = user.email.strip().lower()

        data = user.to_dict(exclude_none=True)
        result = self.supabase.table(self.table_name).insert(data).execute()

        if result.data and len(result.data) > 0:
            return User.from_dict(result.data[0])
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        result = self.supabase.table(self.table_name).select('*').eq('id', user_id).execute()

        if result.data and len(result.data) > 0:
            return User.from_dict(result.data[0])
        return None

    def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        result = self.supabase.table(self.table_name).select('*').eq('email', email.strip().lower()).execute()

        if result.data and len(result.data) > 0:
            return User.from_dict(result.data[0])
        return None

    def get_by_username(self, username: str) -> Optional[User]:
        result = self.supabase.table(self.table_name).select('*').eq('username', username).execute()

        if result.data and len(result.data) > 0:
            return User.from_dict(result.data[0])
        return None

    def unique_username(self, email: str) -> str:
        """Derive an unused username from the local part of an email address."""
        base = re.sub(r'[^a-z0-9_.]', '', email.split('@')[0].lower()) or 'user'
        username = base
        suffix = 1
        while self.get_by_username(username):
            suffix += 1
            username = f"{base}{suffix}"
        return username

    def get_by_company(self, company_id: int, role: Optional[str] = None) -> List[User]:
        query = self.supabase.table(self.table_name).select('*').eq('company_id', company_id)
        if role:
            query = query.eq('role', role)
        result = query.order('created_at', desc=True).execute()
        return [User.from_dict(item) for item in (result.data or [])]

    def get_company_admins(self, company_id: int) -> List[User]:
        return [u for u in self.get_by_company(company_id, role='company_admin') if u.active]

    def get_all(self, role: Optional[str] = None) -> List[User]:
        query = self.supabase.table(self.table_name).select('*')
        if role:
            query = query.eq('role', role)
        result = query.order('created_at', desc=True).execute()
        return [User.from_dict(item) for item in (result.data or [])]

    def update(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]:
        if not fields:
            return self.get_by_id(user_id)
        result = self.supabase.table(self.table_name).update(fields).eq('id', user_id).execute()

        if result.data and len(result.data) > 0:
            return User.from_dict(result.data[0])
        return None

    def set_password(self, user_id: int, raw_password: str) -> Optional[User]:
        return self.update(user_id, {'password': hash_password(raw_password)})

    def record_login(self, user_id: int) -> None:
        self.update(user_id, {'last_login_at': utcnow().isoformat()})

    def deactivate(self, user_id: int) -> bool:
        return self.update(user_id, {'active': False}) is not None

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """
        Check credentials.

        Returns a dict with ``user`` on success, or ``error`` holding the
        message the login endpoint should return.
        """
        user = self.get_by_email(email)
        if not user:
            logger.warning(f"Login failed: no user for {email}")
            return {'error': 'Invalid credentials'}
        if not user.active:
            logger.warning(f"Login refused for deactivated user {user.id}")
            return {'error': 'Account is deactivated'}
        if not verify_password(user.password, password):
            logger.warning(f"Login failed: wrong password for user {user.id}")
            return {'error': 'Invalid credentials'}
        return {'user': user}
