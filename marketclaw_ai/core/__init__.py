"""
Core utilities and configuration for MarketClaw.

This package provides the ambient infrastructure shared by the tool gateway:
environment-driven settings, logging configuration and optional Logfire
monitoring.
"""

from marketclaw_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
