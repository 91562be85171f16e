# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import os
import sys
from pathlib import Path

from loguru import logger

__all__ = ["logger", "setup_logging"]

LOG_DIR = Path("logs")
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(log_dir: Path = LOG_DIR, level: str | None = None) -> None:
    """Configure the stderr sink and the JSON file sink.

    Args:
        log_dir: Directory that receives ``app.log``. Created if missing.
        level: Minimum level for the stderr sink. Defaults to ``LOG_LEVEL`` or INFO.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logger.add(
        log_dir / "app.log",
        level="DEBUG",
        serialize=True,
        rotation="50 MB",
        retention="14 days",
        enqueue=True,
    )


setup_logging()
