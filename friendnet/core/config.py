import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = Field(default="local", alias="ENV")

    api_base_url: str = Field(default="https://friend-assignemnt.vercel.app", alias="API_BASE_URL")
    http_timeout_seconds: float = Field(default=10.0, gt=0, alias="HTTP_TIMEOUT_SECONDS")

    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")

    # ─────────────────────────────────────────────
    # CLI defaults
    # ─────────────────────────────────────────────
    username: str | None = Field(default=None, alias="FRIENDNET_USERNAME")
    password: str | None = Field(default=None, alias="FRIENDNET_PASSWORD")

    @field_validator("api_base_url", mode="before")
    @classmethod
    def normalize_api_base_url(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        cleaned = value.strip().strip("\"'")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        return cleaned.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        cleaned = value.strip().upper()
        if cleaned not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return cleaned

    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

settings = Settings()
