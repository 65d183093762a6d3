# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (backend client for cart mirroring)
      - CART_STORAGE_DIR / CART_STORAGE_KEY (local cart persistence)
      - CART_MIRROR_MAX_ATTEMPTS / CART_MIRROR_WORKERS (remote mirror queue)
      - RANKING_LIMIT (size of every ranking)
    """

    PROJECT_NAME: str = "JamJam Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase config
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Local cart persistence: one JSON file per cart session,
    # the cart lives under a fixed key inside the file.
    CART_STORAGE_DIR: str = ".cart_storage"
    CART_STORAGE_KEY: str = "jam-cart-storage"

    # Remote mirror queue
    CART_MIRROR_MAX_ATTEMPTS: int = 3
    CART_MIRROR_WORKERS: int = 4

    RANKING_LIMIT: int = 10

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
