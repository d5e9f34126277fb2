import logging
import threading

from supabase import create_client, Client

from rankitpro.utils.constants import Settings

logger = logging.getLogger(__name__)


class SupabaseClientSingleton:
    """Process-wide Supabase client built from ``SUPABASE_URL`` / ``SUPABASE_SECRET_KEY``."""
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> Client:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    settings = Settings()
                    if not settings.SUPABASE_URL or not settings.SUPABASE_SECRET_KEY:
                        raise ValueError("SUPABASE_SECRET_KEY and SUPABASE_URL must be set in environment variables")

                    cls._instance = create_client(settings.SUPABASE_URL, settings.SUPABASE_SECRET_KEY)
                    logger.info(f"Supabase client created for {settings.SUPABASE_URL}")

        return cls._instance

    @classmethod
    def set_instance(cls, client) -> None:
        """Install an already-built client (used by workers and tests)."""
        with cls._lock:
            cls._instance = client

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None
