from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    telegram_bot_token: str
    db_path: str = "contaflow.db"
    debug: bool = False

    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8080
    webhook_path: str = "/telegram/webhook"
    webhook_base_url: str | None = None
    webhook_secret: str | None = None

    assistant_provider: str = "openai"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    completion_url: str = "https://api.openai.com/v1/chat/completions"
    completion_temperature: float = 0.7
    completion_timeout: int = 60
    anthropic_api_key: str | None = None
    anthropic_model: str = "haiku"

    link_code_length: int = 8
    link_code_ttl_minutes: int = 15

    @field_validator("assistant_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
        if v not in ("openai", "anthropic"):
            raise ValueError(f"Unknown assistant provider: {v!r}")
        return v

    @field_validator("webhook_path", mode="before")
    @classmethod
    def ensure_leading_slash(cls, v):
        if isinstance(v, str) and not v.startswith("/"):
            return "/" + v
        return v


settings = Settings()
