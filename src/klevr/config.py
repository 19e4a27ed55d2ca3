from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Klevr"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    app_base_url: str = "http://127.0.0.1:8787"
    timezone: str = "America/New_York"
    log_level: str = "INFO"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./data/klevr.db"
    data_dir: Path = Path("./data")
    storage_backend: str = "local"
    storage_dir: Path = Path("./data/objects")
    s3_bucket_name: str = ""
    s3_endpoint_url: str | None = None
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    session_cookie_name: str = "appSession"
    session_ttl_min: int = 720
    auth0_domain: str = ""
    auth0_client_id: str = ""

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_writer: str = "gpt-4o-2024-05-13"
    openai_model_extractor: str = "gpt-4o-mini-2024-07-18"
    openai_timeout_sec: int = 30
    openai_max_retries: int = 2

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "qwen2.5:14b-instruct"
    local_llm_timeout_sec: int = 90

    llm_rate_limit: str = "60/minute"

    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    adzuna_base_url: str = "https://api.adzuna.com/v1/api/jobs/us"
    adzuna_timeout_sec: int = 15

    scrape_timeout_sec: int = 30
    min_description_length: int = 300

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"
    celery_task_always_eager: bool = False
    event_retry_backoff_sec: float = 1.0
    event_signing_key: str = ""

    task_stream_poll_interval_sec: float = 2.0
    download_url_ttl_sec: int = 900

    cors_origins: str = "http://127.0.0.1:3000"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, value: str) -> str:
        allowed = {"local", "s3"}
        if value not in allowed:
            raise ValueError(f"storage_backend must be one of {sorted(allowed)}")
        return value

    @property
    def requires_event_signature(self) -> bool:
        return self.app_env not in {"development", "test"}

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
