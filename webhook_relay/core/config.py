from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Webhook Relay"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 443
    # Shared secret expected in x-webhook-secret on every /webhooks/* route.
    webhook_secret: str = ""
    github_webhook_secret: str = ""
    krisp_webhook_secret: str = ""
    notify_base_url: str = "http://127.0.0.1:18789"
    notify_token: str = ""
    notify_timeout_seconds: float = 5.0
    notify_user_agent: str = "WebhookRelay/1.0"
    log_dir: str = "logs"
    krisp_data_dir: str = "data/krisp"
    tls_cert: str = ""
    tls_key: str = ""
    tls_ca: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if cleaned and not cleaned.startswith("/"):
            return f"/{cleaned}"
        return cleaned

    @field_validator(
        "webhook_secret",
        "github_webhook_secret",
        "krisp_webhook_secret",
        "notify_token",
        mode="before",
    )
    @classmethod
    def strip_secret(cls, value: str) -> str:
        return value.strip()

    @field_validator("notify_base_url", mode="before")
    @classmethod
    def normalize_notify_base_url(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("notify_timeout_seconds", mode="before")
    @classmethod
    def normalize_notify_timeout(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 5.0
        return parsed_value


@lru_cache
def get_settings() -> Settings:
    return Settings()
