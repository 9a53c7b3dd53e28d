"""
MedGuide Configuration Management
Environment-driven settings for the API, the Celery worker and the rule catalog
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import List


class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )

    # Environment
    environment: str = Field(default="development", pattern="^(development|production|test)$")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # API Server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_workers: int = Field(default=4, ge=1, le=32)
    api_reload: bool = Field(default=True)

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")
    celery_task_always_eager: bool = Field(default=False)
    worker_prefetch_multiplier: int = Field(default=2, ge=1, le=10)
    task_time_limit: int = Field(default=120, ge=10, le=1800)
    task_soft_time_limit: int = Field(default=100, ge=5, le=1700)

    # Medication events
    strict_date_parsing: bool = Field(default=True)

    # Clinical Rules
    rules_beers: bool = Field(default=True)
    rules_stopp_start: bool = Field(default=True)
    rules_drug_disease: bool = Field(default=True)
    rules_interactions: bool = Field(default=True)
    rules_duplication: bool = Field(default=True)

    # Security
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    cors_allow_credentials: bool = Field(default=True)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def validate_task_limits(self) -> "Settings":
        """Soft time limit must fire before the hard limit"""
        if self.task_soft_time_limit >= self.task_time_limit:
            raise ValueError("task_soft_time_limit must be lower than task_time_limit")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment == "production"

    def enabled_rule_categories(self) -> List[str]:
        """Rule categories switched on for evaluation"""
        flags = {
            "BEERS": self.rules_beers,
            "STOPP_START": self.rules_stopp_start,
            "DRUG_DISEASE": self.rules_drug_disease,
            "INTERACTION": self.rules_interactions,
            "DUPLICATION": self.rules_duplication,
        }
        return [category for category, enabled in flags.items() if enabled]


# Global settings instance
settings = Settings()
