from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Sync
    notification_poll_interval_sec: float = 30.0
    local_store_path: str = "~/.tables/local_store.json"  # empty string keeps everything in memory

    # Sharing
    excerpt_min_length: int = 20
    excerpt_soft_max_length: int = 1200
    ask_max_length: int = 200
    search_results_limit: int = 10

    # App
    app_name: str = "tables-sync"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_local_store_path(self) -> Optional[Path]:
        if not self.local_store_path.strip():
            return None
        return Path(self.local_store_path).expanduser()

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
