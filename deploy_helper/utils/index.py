"""
HOMESERVER Deploy Helper
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Shared logging helpers for the deploy helper.

All modules log through log_message() so the CLI entry point owns the
handler, format and level in one place.
"""

import os
import sys
import logging

LOGGER_NAME = "deploy_helper"
DEFAULT_LOG_LEVEL = "DEBUG"
LOG_LEVEL_ENV = "DEPLOY_HELPER_LOG_LEVEL"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = None) -> logging.Logger:
    """
    Log to stderr only; the service manager's journal owns persistence.

    Args:
        level: Log level name. Falls back to DEPLOY_HELPER_LOG_LEVEL, then DEBUG.

    Returns:
        logging.Logger: The configured package logger
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    unified_format = logging.Formatter('[%(asctime)s] [%(levelname)s] %(message)s',
                                       datefmt='%Y-%m-%d %H:%M:%S')
    console_handler.setFormatter(unified_format)

    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.addHandler(console_handler)
    logger.setLevel(numeric_level)
    return logger


def log_message(message: str, level: str = "INFO"):
    """Unified logger used throughout the orchestrator and helpers."""
    if level == "ERROR":
        logger.error(message)
    elif level == "WARNING":
        logger.warning(message)
    elif level == "DEBUG":
        logger.debug(message)
    else:
        logger.info(message)
