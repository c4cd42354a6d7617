"""Application configuration management using Pydantic Settings.

This module provides centralized configuration for the NeuroTrack backend,
supporting environment variables and .env files for different deployment environments.
"""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the backend directory (parent of neurotrack/ directory)
BACKEND_DIR = Path(__file__).parent.parent.parent
ENV_FILE = BACKEND_DIR / ".env"

# Load environment variables from .env file
load_dotenv(ENV_FILE)


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    driver: str = Field(default="postgresql+asyncpg", description="Database driver")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    user: str = Field(default="neurotrack", description="Database user")
    password: str = Field(default="", description="Database password")
    name: str = Field(default="neurotrack", description="Database name")
    pool_size: int = Field(default=10, ge=1, le=100, description="Connection pool size")
    max_overflow: int = Field(default=20, ge=0, le=100, description="Max pool overflow")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @property
    def url(self) -> str:
        """Get database connection URL."""
        if self.driver.startswith("sqlite"):
            return f"{self.driver}:///{self.name}"
        return f"{self.driver}://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class AnalysisServiceSettings(BaseSettings):
    """Configuration for the external MRI volumetric analysis service."""

    model_config = SettingsConfigDict(env_prefix="ANALYSIS_")

    base_url: str = Field(
        default="http://localhost:8001",
        description="Base URL of the analysis service (exposes /upload and /status/{job_id})",
    )
    model_name: str = Field(
        default="AssemblyNet-1.0.0",
        description="Model label recorded on persisted analysis results",
    )
    request_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for status requests"
    )
    upload_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Timeout for scan uploads"
    )
    download_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Timeout for downloading scan files from blob storage"
    )


class ProcessorSettings(BaseSettings):
    """Configuration for the background scan processor."""

    model_config = SettingsConfigDict(env_prefix="PROCESSOR_")

    batch_limit: int = Field(
        default=5, ge=1, le=100, description="Scans fetched per trigger invocation"
    )
    max_retries: int = Field(default=3, ge=1, description="Attempts before a scan fails for good")

    # Polling
    poll_interval_seconds: float = Field(
        default=10.0, ge=0.0, description="Delay before each status poll"
    )
    max_poll_attempts: int = Field(
        default=60, ge=1, description="Status polls before the job is considered timed out"
    )
    transient_poll_failures: Literal["count", "separate"] = Field(
        default="count",
        description=(
            "'count': a failed status request consumes a poll attempt. "
            "'separate': failed requests use their own budget."
        ),
    )
    max_transient_poll_failures: int = Field(
        default=10,
        ge=0,
        description="Budget for failed status requests when the policy is 'separate'",
    )

    # Structural flag thresholds
    hippocampus_atrophy_threshold_mm3: float = Field(
        default=7000.0, gt=0, description="Hippocampal volume below which atrophy is flagged"
    )
    ventricle_enlargement_threshold_mm3: float = Field(
        default=60000.0, gt=0, description="Ventricular volume above which enlargement is flagged"
    )

    # Demographic defaults
    default_patient_age: int = Field(default=50, ge=0, description="Age used when unknown")
    default_patient_sex: str = Field(default="Male", description="Sex used when unknown")

    # Operator requeue
    stale_processing_minutes: int = Field(
        default=30,
        ge=1,
        description="Age after which a scan stuck in 'processing' may be requeued by an operator",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="NeuroTrack", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    workers: int = Field(default=4, ge=1, le=32, description="Number of workers")

    # Trigger authentication
    cron_secret: str = Field(
        default="",
        description="Shared secret expected as 'Authorization: Bearer <secret>' on the trigger",
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(default=True, description="Allow CORS credentials")

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    analysis: AnalysisServiceSettings = Field(default_factory=AnalysisServiceSettings)
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings after initialization."""
        if self.environment == "production":
            if self.debug:
                raise ValueError("Debug mode must be disabled in production (DEBUG=false)")

            if not self.cron_secret:
                banner = "!" * 70
                print(
                    f"\n{banner}\n"
                    "WARNING: CRON_SECRET is not configured for production!\n"
                    f"{banner}\n\n"
                    "The scan processing trigger will accept unauthenticated requests.\n"
                    "Set CRON_SECRET in your environment or .env file and send it as:\n"
                    "  Authorization: Bearer <secret>\n"
                    f"{banner}\n",
                    file=sys.stderr,
                )

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
