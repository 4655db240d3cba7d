# feerecon/config.py

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Fee Reconciliation API"
    app_env: str = "development"
    debug: bool = True
    frontend_url: str = "http://localhost:3000"

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Matching config
    auto_match_threshold: float = 0.95
    member_number_confidence: float = 0.95
    min_name_confidence: float = 0.5
    name_match_boost: float = 0.05
    name_match_max_confidence: float = 0.93
    combined_match_boost: float = 0.02
    combined_match_max_confidence: float = 0.99

    # Late payments
    late_payment_day: int = 15
    late_fee_due_days: int = 14

    # Batch limits
    rescan_page_size: int = 10000
    roster_limit: int = 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
