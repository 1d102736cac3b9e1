# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional


class COLORS:
    """ANSI color codes for terminal output"""
    reset = "\033[0m"
    red = "\033[31m"
    green_code = "\033[32m"
    yellow_code = "\033[33m"
    blue = "\033[34m"
    magenta = "\033[35m"
    cyan = "\033[36m"
    white = "\033[37m"
    bold = "\033[1m"

    @staticmethod
    def intense_red(text):
        return f"\033[91m{text}\033[0m"

    @staticmethod
    def intense_blue(text):
        return f"\033[94m{text}\033[0m"

    @staticmethod
    def yellow(text):
        return f"\033[33m{text}\033[0m"


LOGGER_ROOT = "tracerunner"

_file_handlers = []
_level = logging.INFO


def get_logger(name, color=COLORS.white):
    """Get a colored logger instance.

    Records are written to stderr; stdout belongs to the tracer output.
    """
    logger = logging.getLogger(f"{LOGGER_ROOT}.{name}")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            f'{color}%(asctime)s - %(name)s - %(levelname)s{COLORS.reset} - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_level)
        logger.propagate = False
        for extra in _file_handlers:
            logger.addHandler(extra)

    return logger


def set_log_level(level):
    """Apply a level to every tracerunner logger created so far"""
    global _level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    _level = level
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(LOGGER_ROOT) and isinstance(logger, logging.Logger):
            logger.setLevel(level)


def add_log_file(path: str, max_size_mb: int, max_backups: int) -> Optional[logging.Handler]:
    """
    Mirror every tracerunner logger into a plain-text log file.

    Uses size based rotation when max_size_mb is positive.
    """
    if not path:
        return None

    if max_size_mb > 0:
        handler: logging.Handler = RotatingFileHandler(
            path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=max(max_backups, 0),
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    _file_handlers.append(handler)

    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(LOGGER_ROOT) and isinstance(logger, logging.Logger):
            logger.addHandler(handler)
    return handler
