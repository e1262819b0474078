from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # An empty token is allowed at startup; each call path decides whether it is fatal.
    finnhub_api_key: str = Field(
        "",
        validation_alias=AliasChoices("FINNHUB_API_KEY", "NEXT_PUBLIC_FINNHUB_API_KEY"),
    )
    finnhub_base_url: str = Field("https://finnhub.io/api/v1", validation_alias="FINNHUB_BASE_URL")
    request_timeout_seconds: float = Field(15.0, gt=0, validation_alias="REQUEST_TIMEOUT_SECONDS")
    max_attempts: int = Field(3, ge=1, validation_alias="MAX_ATTEMPTS")
    backoff_base_seconds: float = Field(1.0, ge=0, validation_alias="BACKOFF_BASE_SECONDS")
    log_level: LogLevel = Field("INFO", validation_alias="LOG_LEVEL")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        invalid = [e["loc"][0] for e in exc.errors()]
        invalid_str = ", ".join(str(m).upper() for m in invalid)
        raise RuntimeError(
            f"Invalid environment variables: {invalid_str}. "
            "Please fix them in your environment or .env file."
        ) from exc
