"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "feedback-buffer"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    database_url: str = "sqlite:///./feedback_buffer.db"
    # Default ingestion target for the worker CLI
    endpoint_base: str = "http://localhost:7300/api/widget"
    api_key: str = ""
    submit_timeout: float = 60.0  # large media uploads
    sync_interval_seconds: float = 30.0
    retry_initial_delay_seconds: float = 5.0
    retry_backoff_multiplier: float = 2.0
    retry_max_delay_seconds: float = 300.0
    retry_max_attempts: int = 5
    connectivity_check_url: str = ""
    connectivity_check_interval: float = 15.0
    connectivity_check_timeout: float = 5.0
    metrics_enabled: bool = True
    metrics_host: str = "0.0.0.0"
    metrics_port: int = 9510
    log_level: str = "INFO"
    log_buffer_size: int = 500

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

__all__ = ["settings", "Settings"]
