from rankitpro.database.supabase_client import SupabaseClientSingleton

__all__ = ["SupabaseClientSingleton"]
