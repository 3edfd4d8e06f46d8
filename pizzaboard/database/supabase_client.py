from typing import Optional
from postgrest import APIError
from supabase import create_client, Client
from pizzaboard.config import settings

UNIQUE_VIOLATION = "23505"


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use in maintenance jobs only."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def is_unique_violation(exc: Exception) -> bool:
    """True when the store rejected a write because of a unique constraint."""
    return isinstance(exc, APIError) and getattr(exc, "code", None) == UNIQUE_VIOLATION


def first_row(result) -> Optional[dict]:
    if not result.data:
        return None
    return result.data[0]


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def quote_filter_value(value) -> str:
    """Double-quote a value for a PostgREST logic filter such as ``or_``."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def contains_any(columns, term: str) -> str:
    """``or_`` filter matching ``term`` as a case-insensitive substring of any column."""
    pattern = quote_filter_value(f"%{escape_like(term)}%")
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)
