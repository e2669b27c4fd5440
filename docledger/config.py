"""Configuration settings for the docledger chaincode host."""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ledger state storage for the development host
    database_url: str = "sqlite:///./docledger.db"

    # Host API used by the application client
    api_base: str = "http://localhost:8000"

    # Service identification
    service_name: str = "docledger"
    log_level: str = "INFO"

    # Key layout for seeded records and range queries
    key_prefix: str = "StudentDoc"
    range_end_suffix: str = "999"

    # Keep whatever fields decode when a stored document is malformed.
    # Set to true to fail the change functions instead.
    strict_decode: bool = False

    # Zone used when rendering history timestamps
    history_timezone: str = "UTC"

    @field_validator("history_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
