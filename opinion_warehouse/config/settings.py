"""
Customer Opinions Data Warehouse
Centralized Configuration Management

Configuration is read with Pydantic settings from environment variables
(and an optional ``.env`` file), validated and typed.
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Warehouse database configuration"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_DB_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="dw_opiniones", description="Database name")
    user: str = Field(default="warehouse", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL, asyncpg unless ``url`` is set"""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.name}"
        )


class SourceSettings(BaseSettings):
    """Locations of the three opinion sources"""

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    survey_csv_path: str = Field(default="./data/surveys_part1.csv", description="Survey CSV file")
    survey_csv_delimiter: str = Field(default=",", description="Survey CSV delimiter")
    reviews_db_url: Optional[str] = Field(default=None, description="Async URL of the web reviews database")
    reviews_page_size: int = Field(default=1000, description="Rows fetched per review page")
    social_comments_path: str = Field(
        default="./data/social_comments.json",
        description="JSON dump of the social comments feed",
    )


class EtlSettings(BaseSettings):
    """Dimensional load configuration"""

    model_config = SettingsConfigDict(env_prefix="ETL_")

    commit_every: int = Field(default=50, ge=1, description="Rows per commit while loading")
    batch_key: int = Field(default=1, description="ETL batch surrogate key stamped on facts")
    batch_name: str = Field(default="full-reload", description="ETL batch name")

    response_time_min: int = Field(default=10, description="Lower bound of synthetic response time (s)")
    response_time_max: int = Field(default=300, description="Upper bound of synthetic response time (s)")
    random_seed: Optional[int] = Field(default=None, description="Seed for synthetic fills")

    # Source names per source kind
    survey_source_name: str = Field(default="Survey CSV")
    review_source_name: str = Field(default="Web Reviews")
    social_source_name: str = Field(default="Social Media API")

    # Channels
    survey_channel_name: str = Field(default="Online Survey")
    review_channel_name: str = Field(default="Web")
    social_channels: List[str] = Field(
        default=["Facebook", "Instagram", "Twitter"],
        description="Social platforms pre-loaded into the channel dimension",
    )

    @model_validator(mode="after")
    def validate_response_range(self) -> "EtlSettings":
        """Response time bounds must be ordered"""
        if self.response_time_min > self.response_time_max:
            raise ValueError("response_time_min must not exceed response_time_max")
        return self

    @property
    def source_names(self) -> List[str]:
        """Fixed list of source names"""
        return [
            self.survey_source_name,
            self.review_source_name,
            self.social_source_name,
        ]

    @property
    def channel_names(self) -> List[str]:
        """Fixed list of channel names"""
        return [self.survey_channel_name, self.review_channel_name, *self.social_channels]

    @property
    def response_time_range(self) -> Tuple[int, int]:
        return self.response_time_min, self.response_time_max


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="opinion-warehouse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    etl: EtlSettings = Field(default_factory=EtlSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
