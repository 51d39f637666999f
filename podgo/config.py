# podgo/config.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "postgresql://localhost/podgo"
    env: Literal["dev", "stage", "prod"] = "dev"
    log_level: str = "INFO"
    sql_echo: bool = False

    # Input
    feeds_file: str = "feeds.json"

    # Ingestion throttling
    batch_size: int = 10
    concurrency_limit: int = 3
    inter_batch_delay: float = 5.0  # seconds between batches
    fetch_timeout: float = 10.0  # absolute per-feed fetch budget
    run_timeout: float = 600.0  # deadline for the whole ingestion run
    user_agent: str = "podgo/1.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
