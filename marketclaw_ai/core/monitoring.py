"""
Monitoring and Tracing Configuration Module.

This module provides integration with Pydantic Logfire for monitoring of tool
dispatch, including:
- Tool execution outcomes and latency
- Recorded costs per tool and provider
- Budget blocks
- Errors that must not alter a dispatch outcome (e.g. cost-log failures)

Every helper here is best-effort: when Logfire is disabled, not installed or
failing, the call degrades to a debug log line and never raises.
"""

import logging
import os
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogfireConfig

logger = logging.getLogger(__name__)

# Logfire configuration from environment
LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_PROJECT_NAME = os.getenv("LOGFIRE_PROJECT_NAME", "marketclaw")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "marketclaw-tools")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.0.0")

# Sampling configuration
LOGFIRE_SAMPLE_RATE = float(os.getenv("LOGFIRE_SAMPLE_RATE", "1.0"))

_initialized = False


def initialize_logfire(config: Optional["LogfireConfig"] = None) -> bool:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        config: Logfire settings, normally ``Settings.logfire`` (which also reads
            ``.env``). Without it the module-level ``LOGFIRE_*`` environment values
            are used.

    Returns:
        True if Logfire was configured, False otherwise.
    """
    global _initialized

    if config is None:
        enabled, token = LOGFIRE_ENABLED, LOGFIRE_TOKEN
        project, environment = LOGFIRE_PROJECT_NAME, LOGFIRE_ENVIRONMENT
        service, version, sample_rate = LOGFIRE_SERVICE_NAME, LOGFIRE_SERVICE_VERSION, LOGFIRE_SAMPLE_RATE
    else:
        enabled, token = config.enabled, config.token or ""
        project, environment = config.project_name, config.environment
        service, version, sample_rate = config.service_name, config.service_version, config.sample_rate

    if not enabled:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not token:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    try:
        import logfire
        from logfire import SamplingOptions

        logfire.configure(
            token=token,
            service_name=service,
            service_version=version,
            environment=environment,
            sampling=SamplingOptions(head=sample_rate),
        )
        _initialized = True
        logger.info(f"Logfire monitoring initialized: project={project}, environment={environment}, service={service}")
        return True
    except ImportError:
        logger.warning(
            "Logfire is enabled but 'logfire' package is not installed. " "Install it with: pip install logfire"
        )
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)
    return False


def is_enabled() -> bool:
    """Return whether Logfire has been configured in this process."""
    return _initialized


def _emit(level: str, message: str, **attributes: Any) -> None:
    if not _initialized:
        return
    try:
        import logfire

        getattr(logfire, level)(message, **attributes)
    except Exception:
        logger.debug(f"Could not send '{message}' to Logfire")


def log_tool_execution(
    tool: str,
    success: bool,
    duration_ms: float,
    agent: Optional[str] = None,
    product_id: Optional[str] = None,
) -> None:
    """
    Log a completed tool dispatch.

    Args:
        tool: The tool name
        success: Whether the dispatch succeeded
        duration_ms: Time spent in the tool itself, in milliseconds
        agent: Sub-agent attribution (optional)
        product_id: Product attribution (optional)
    """
    _emit(
        "info",
        "Tool executed",
        tool=tool,
        success=success,
        duration_ms=duration_ms,
        agent=agent,
        product_id=product_id,
    )


def log_cost_recorded(tool: str, cost_usd: float, provider: str) -> None:
    """Log a cost that was forwarded to the budget gate."""
    _emit("info", "Tool cost recorded", tool=tool, cost_usd=cost_usd, provider=provider)


def log_budget_blocked(tool: str, reason: Optional[str]) -> None:
    """Log a dispatch denied by the budget gate."""
    _emit("warn", "Tool blocked by budget", tool=tool, reason=reason)


def log_error(error_type: str, error_message: str, context: Optional[dict] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type of error
        error_message: Error message
        context: Additional context dictionary
    """
    _emit("error", f"{error_type}: {error_message}", **(context or {}))
