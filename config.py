from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from functools import lru_cache


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Payments Ledger"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: LogLevel = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Input settings
    csv_encoding: str = "utf-8"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: LogLevel = "DEBUG"
    log_format: Literal["json", "text"] = "text"


class ProductionSettings(Settings):
    log_level: LogLevel = "INFO"
    log_format: Literal["json", "text"] = "json"


class TestingSettings(Settings):
    log_level: LogLevel = "WARNING"  # Reduce noise in tests


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
