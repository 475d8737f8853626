"""
Logging Configuration
One named logger per concern (versioning, workflows, n8n, gateway), all
writing pipe-separated lines to stderr at LOG_LEVEL.
"""
import logging
import sys
from typing import Optional

from workflow_hub.core.config import settings


def _level_from_settings() -> int:
    level = logging.getLevelName(settings.log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(name: str = "workflow_hub", level: Optional[int] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (typically module name)
        level: Logging level (defaults to LOG_LEVEL, then INFO)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = _level_from_settings()

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        # stdout carries the MCP stdio protocol
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)

    return logger


# Pre-configured loggers for each service
versioning_logger = setup_logging("workflow_hub.versioning")
workflows_logger = setup_logging("workflow_hub.workflows")
n8n_logger = setup_logging("workflow_hub.n8n")
gateway_logger = setup_logging("workflow_hub.gateway")
