# alunas/services/supabase_service.py
from __future__ import annotations

from typing import Any

from alunas.config.settings import get_settings

# Lazy client: created on first access so imports don't crash without env
_client = None


def _create_client():
    """
    Create and cache the Supabase client on first use.
    Raises at call-time (not import-time) if credentials are missing.
    """
    global _client
    if _client is not None:
        return _client

    settings = get_settings()
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise RuntimeError(
            "Supabase credentials missing. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE "
            "or SUPABASE_KEY in environment or .env at the repo root."
        )

    from supabase import create_client

    _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


class _SupabaseProxy:
    """
    Transparent proxy so callers can keep doing:
        from alunas.services.supabase_service import supabase
        supabase.table("alunas_hotmart").select("*").execute()
    The underlying client is initialized on first attribute access.
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(_create_client(), name)


# Public handle shared by every repository
supabase = _SupabaseProxy()


def get_client():
    """Return the real Supabase client (initializing it if needed)."""
    return _create_client()


def assert_supabase_ready() -> None:
    """
    Fail fast at runtime (not import time).
    Called from the API startup hook when ALUNAS_REQUIRE_DB is set.
    """
    _ = _create_client()


def reset_client() -> None:
    """Forget the cached client; the next access re-reads settings."""
    global _client
    _client = None
