"""
Logging setup for MarketClaw tool dispatch.

Every module logs through stdlib ``logging`` under its dotted name. ``setup_logging``
wires the root logger once per process (console plus an optional DEBUG file under the
workspace) and pins per-package levels so dispatch tracing stays visible while
third-party chatter is kept down.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

# One JSON object per line; messages are not escaped
JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS: Dict[str, str] = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "marketclaw.log"

MODULE_LOG_LEVELS = {
    "marketclaw_ai.tools": "DEBUG",
    "marketclaw_ai.tools.registry": "DEBUG",
    "marketclaw_ai.costs": "INFO",
    "marketclaw_ai.core": "INFO",
    # third-party
    "asyncio": "WARNING",
    "logfire": "WARNING",
}


def _format_for(log_format: str) -> str:
    return FORMATS.get(log_format, DETAILED_FORMAT)


def _handler(handler: logging.Handler, level, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: bool = True,
    log_dir: Optional[Path] = None,
) -> None:
    """
    (Re)configure the root logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_level: Console level name, case-insensitive. Defaults to INFO.
        log_format: ``simple``, ``detailed`` or ``json``. Unknown names fall back to detailed.
        enable_file: Also write everything at DEBUG to ``<log_dir>/marketclaw.log``.
        log_dir: Directory for the log file, created on demand. Defaults to ``./logs``.
    """
    level = (log_level or "INFO").upper()
    fmt = log_format or "detailed"
    formatter = logging.Formatter(_format_for(fmt), datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()

    root.addHandler(_handler(logging.StreamHandler(), level, formatter))

    if enable_file:
        directory = Path(log_dir) if log_dir is not None else Path("logs")
        directory.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(directory / LOG_FILE_NAME), logging.DEBUG, formatter))

    for name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(module_level)

    root.info(f"Logging configured: level={level}, format={fmt}, file_logging={enable_file}")


def get_logger(name: str) -> logging.Logger:
    """Return the stdlib logger for ``name`` (usually ``__name__``)."""
    return logging.getLogger(name)
