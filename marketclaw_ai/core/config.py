"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WORKSPACE = Path.home() / ".marketclaw" / "workspace"

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class BudgetGateConfig(BaseModel):
    """Budget gate configuration."""

    fail_open: bool = Field(
        default=True,
        alias="MARKETCLAW_BUDGET_FAIL_OPEN",
        description="Allow every call when no cost tracker is wired (False blocks everything instead)",
    )
    warning_threshold: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        alias="MARKETCLAW_DEFAULT_WARNING_THRESHOLD",
        description="Percent of a budget at which check_budgets starts reporting it",
    )

    model_config = {"populate_by_name": True}


class LogfireConfig(BaseModel):
    """Pydantic Logfire configuration."""

    enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED", description="Enable Logfire monitoring")
    token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN", description="Logfire write token")
    service_name: str = Field(
        default="marketclaw-tools", alias="LOGFIRE_SERVICE_NAME", description="Service name reported to Logfire"
    )
    environment: str = Field(
        default="development", alias="LOGFIRE_ENVIRONMENT", description="Deployment environment tag"
    )
    project_name: str = Field(default="marketclaw", alias="LOGFIRE_PROJECT_NAME", description="Logfire project name")
    service_version: str = Field(default="0.0.0", alias="LOGFIRE_SERVICE_VERSION", description="Service version tag")
    sample_rate: float = Field(
        default=1.0, ge=0.0, le=1.0, alias="LOGFIRE_SAMPLE_RATE", description="Head sampling rate for traces"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Workspace Configuration
    # =====================================================================
    workspace: Path = Field(
        default=DEFAULT_WORKSPACE,
        description="Root directory for cost ledgers, budgets and tool configuration",
        alias="MARKETCLAW_WORKSPACE",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="MARKETCLAW_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="MARKETCLAW_LOG_FORMAT",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Also write logs to <workspace>/logs/marketclaw.log",
        alias="MARKETCLAW_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Budget Gate Configuration
    # =====================================================================
    cost_tracking_enabled: bool = Field(
        default=True,
        description="Record tool costs and enforce budgets from <workspace>/costs",
        alias="MARKETCLAW_COST_TRACKING",
    )
    budget_fail_open: bool = Field(
        default=True,
        description="Behaviour of an uninitialized budget gate: True never blocks, False blocks everything",
        alias="MARKETCLAW_BUDGET_FAIL_OPEN",
    )
    default_warning_threshold: float = Field(
        default=80.0,
        description="Default warning threshold (percent) for budget alerts",
        alias="MARKETCLAW_DEFAULT_WARNING_THRESHOLD",
    )

    # =====================================================================
    # Logfire Configuration
    # =====================================================================
    logfire_enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED")
    logfire_token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")
    logfire_service_name: str = Field(default="marketclaw-tools", alias="LOGFIRE_SERVICE_NAME")
    logfire_environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT")
    logfire_project_name: str = Field(default="marketclaw", alias="LOGFIRE_PROJECT_NAME")
    logfire_service_version: str = Field(default="0.0.0", alias="LOGFIRE_SERVICE_VERSION")
    logfire_sample_rate: float = Field(default=1.0, alias="LOGFIRE_SAMPLE_RATE")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def budget(self) -> BudgetGateConfig:
        """Get budget gate configuration."""
        return BudgetGateConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def logfire(self) -> LogfireConfig:
        """Get Logfire configuration."""
        return LogfireConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def costs_dir(self) -> Path:
        """Directory holding the daily cost ledgers and ``budgets.json``."""
        return Path(self.workspace).expanduser() / "costs"

    @property
    def products_dir(self) -> Path:
        """Directory holding per-product data."""
        return Path(self.workspace).expanduser() / "products"

    @property
    def global_tool_config_path(self) -> Path:
        """Path of the global tool configuration file."""
        return Path(self.workspace).expanduser() / "tools.json"

    @property
    def log_dir(self) -> Path:
        """Directory used for file logging."""
        return Path(self.workspace).expanduser() / "logs"


settings = Settings()
