"""Logging setup shared by the server and direct Python callers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(log_dir: str, level: int = logging.INFO) -> Path:
    """Send logs to ``<log_dir>/exchange.log`` and the console.

    Calling it again is harmless; handlers are only installed once.
    """
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    log_file = path / "exchange.log"

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if not any(getattr(h, "baseFilename", None) == str(log_file.resolve()) for h in root.handlers):
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    logging.getLogger(__name__).debug("Logging configured at %s", log_file)
    return log_file
