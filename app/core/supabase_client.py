# app/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from app.core.config import get_settings

settings = get_settings()


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - reading public catalog tables (jams, reviews, profiles)
      - rankings and explore queries

    Note: This client still respects RLS.
    """
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - mirroring carts from background workers, where no user
        session is attached to the request anymore

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def get_client() -> Client:
    """
    FastAPI dependency returning the public Supabase client.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(client: Client = Depends(get_client)):
            ...
    """
    return supabase_public()


def get_admin_client() -> Client:
    """FastAPI dependency returning the service-role Supabase client."""
    return supabase_admin()
