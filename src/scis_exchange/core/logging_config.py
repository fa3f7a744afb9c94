"""
Logging setup driven by LoggingConfig
"""

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LoggingConfig, get_config


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging: console always, rotating file when LOG_FILE is set"""
    config = config or get_config().logging

    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count
        ))

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        handlers=handlers,
        force=True
    )

    # Quiet chatty client libraries
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
