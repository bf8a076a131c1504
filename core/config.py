"""
Configuration management using Pydantic Settings
Handles environment variables and validation
"""
from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # Application
    app_name: str = "AuditReports"
    app_version: str = "0.1.0"

    # Database
    database_url: str = Field(default="sqlite:///./audit_reports.db")
    database_echo: bool = Field(default=False)

    # Record source: sql, sharepoint or debug
    record_source: str = Field(default="sql")

    # SharePoint
    sharepoint_site_url: str = Field(default="https://example.sharepoint.com/operations")
    sharepoint_access_token: Optional[SecretStr] = Field(default=None)
    sharepoint_images_list: str = Field(
        default="abb703bc-835c-4671-bad0-2f89956e3b74", description="GUID of the CImages document library"
    )

    # Frozen JSON dumps, laid out as <debug_folder>/<document number>/<List_Name>_Item<N>.json
    debug_folder: str = Field(default="./debug/raw-json")

    # Section mapping for list-based sources
    sections_config_path: str = Field(default="config/sections.yaml")

    # Scoring
    default_passing_grade: float = Field(default=83.0, ge=0.0, le=100.0)
    threshold_cache_ttl_seconds: int = Field(default=300)  # 5 minutes

    # Performance
    request_timeout: int = Field(default=30)
    image_download_concurrency: int = Field(default=5, ge=1)
    report_timeout_seconds: int = Field(default=120)

    # Report layout
    max_history_cycles: int = Field(default=6, ge=1)
    repetitive_display_limit: int = Field(default=5, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("record_source")
    @classmethod
    def validate_record_source(cls, v):
        allowed = ["sql", "sharepoint", "debug"]
        if v not in allowed:
            raise ValueError(f"Record source must be one of: {allowed}")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Validate production-specific settings after all fields are set"""
        if self.environment == "production" and self.record_source == "debug":
            raise ValueError("Production environment cannot read from the debug folder")

        if self.record_source == "sharepoint" and self.environment == "production":
            if not self.sharepoint_access_token:
                raise ValueError("SharePoint access token required when record_source=sharepoint")

        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def get_sharepoint_token(self) -> str:
        """Get the bearer token used for SharePoint REST calls"""
        if not self.sharepoint_access_token:
            raise ValueError("SharePoint access token not configured")
        return self.sharepoint_access_token.get_secret_value()

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    def model_dump(self, **kwargs):
        """Override to mask sensitive fields when serializing"""
        data = super().model_dump(**kwargs)

        sensitive_fields = ["sharepoint_access_token", "database_url"]

        for field in sensitive_fields:
            if field in data and data[field]:
                if hasattr(data[field], "get_secret_value"):
                    value = data[field].get_secret_value()
                else:
                    value = str(data[field])

                # Keep first 4 chars for identification
                if len(value) > 4:
                    data[field] = value[:4] + "*" * (len(value) - 4)
                else:
                    data[field] = "*" * len(value)

        return data


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
