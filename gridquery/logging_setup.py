"""Root logger configuration for services embedding the query engine."""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s [%(process)d] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(level: Optional[Union[str, int]]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    env_level = os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, env_level.upper(), logging.INFO)


def start_log(
    *,
    app_name: str = "gridquery",
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[Union[str, int]] = None,
    to_console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the root logger once for the whole process.

    - Level comes from ``level``, else the ``LOG_LEVEL`` env var, else INFO.
    - With ``log_dir`` (or the ``LOG_DIR`` env var) a UTF-8 file
      ``<app_name>.log`` is written there and rotated at ``max_bytes``.
    - Existing root handlers are removed first so a second call does not
      duplicate every line.

    Returns the configured root logger.
    """

    root = logging.getLogger()
    root.setLevel(_coerce_level(level))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is None:
        log_dir = os.getenv("LOG_DIR") or None
    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            directory / f"{app_name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if to_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console.setLevel(root.level)
        root.addHandler(console)

    root.info(
        "Logging started app=%s dir=%s level=%s",
        app_name,
        str(log_dir) if log_dir is not None else "-",
        logging.getLevelName(root.level),
    )
    return root


__all__ = ["start_log"]
