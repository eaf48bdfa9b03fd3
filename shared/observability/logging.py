"""Logging setup shared across libraries."""

import logging
import sys

from shared.config import Environment, TargetedEstimationConfig, get_config


def setup_logging(config: TargetedEstimationConfig | None = None) -> None:
    """Set up logging configuration."""
    if config is None:
        config = get_config()

    # Configure log level based on environment
    if config.environment == Environment.DEVELOPMENT:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(config.log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    # Configure logging format
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Set up root logger
    logging.basicConfig(
        level=log_level, format=log_format, handlers=[logging.StreamHandler(sys.stdout)]
    )

    # statsmodels and sklearn are chatty below WARNING
    logging.getLogger("statsmodels").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
