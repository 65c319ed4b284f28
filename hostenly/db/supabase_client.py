"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from hostenly.core.config import get_settings

UNIQUE_VIOLATION = "23505"


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return client
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


def is_unique_violation(error: Exception) -> bool:
    """True if a PostgREST error reports a unique constraint violation."""
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
    return str(code) == UNIQUE_VIOLATION
