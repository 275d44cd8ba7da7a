# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Logging configuration with file rotation for applications embedding the store."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from inventory_store.core.config import StoreSettings, load_settings

PACKAGE_LOGGER = "inventory_store"


def setup_logging(
    settings: StoreSettings | None = None, console_level: int = logging.INFO
) -> Path:
    """
    Configure package logging with file rotation.

    Creates two log files in ``settings.log_dir``:
    - inventory_store.log: DEBUG+ messages from the package (5 MB per file, 3 rotations)
    - errors.log: ERROR+ messages from every logger (5 MB per file, 3 rotations)

    Safe to call more than once; previous handlers are replaced.

    Returns:
        Path to the log directory
    """
    settings = settings or load_settings()
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    detailed_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")

    root_logger = logging.getLogger()
    for handler in [h for h in root_logger.handlers if getattr(h, "_inventory_store", False)]:
        root_logger.removeHandler(handler)
        handler.close()

    store_logger = logging.getLogger(PACKAGE_LOGGER)
    store_logger.setLevel(logging.DEBUG)
    for handler in list(store_logger.handlers):
        store_logger.removeHandler(handler)
        handler.close()

    app_log_path = log_dir / "inventory_store.log"
    app_handler = RotatingFileHandler(
        app_log_path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    app_handler.setLevel(logging.DEBUG)
    app_handler.setFormatter(detailed_formatter)
    store_logger.addHandler(app_handler)

    error_log_path = log_dir / "errors.log"
    error_handler = RotatingFileHandler(
        error_log_path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    error_handler._inventory_store = True  # type: ignore[attr-defined]
    root_logger.addHandler(error_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(simple_formatter)
    store_logger.addHandler(console_handler)

    # One DEBUG line per committed write
    logging.getLogger("inventory_store.storage.invalidation").setLevel(logging.INFO)

    log = logging.getLogger(__name__)
    log.info("Inventory store logging initialized")
    log.info("Log directory: %s", log_dir)
    log.info("Platform: %s, Python: %s", sys.platform, sys.version.split()[0])

    return log_dir
