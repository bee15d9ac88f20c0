# reride/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Reference backend (document store) ────────────────────────────────
    DATABASE_URL: str = "sqlite:///./reride.db"
    CORS_ORIGINS: list[str] = ["*"]

    # ── Client data layer ─────────────────────────────────────────────────
    API_BASE_URL: str = "http://localhost:3000/api"
    LOCAL_ONLY: bool = False                              # Skip the network entirely
    LOCAL_STORE_URL: str = "sqlite:///./reride_cache.db"
    LOCAL_STORE_QUOTA_BYTES: int = 5 * 1024 * 1024        # Same budget a browser gives localStorage

    # ── Security ──────────────────────────────────────────────────────────
    BCRYPT_ROUNDS: int = 12

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "reride.log"
    LOG_DIR: str = ""                                     # Empty means <repo>/logs

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
