from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from todoer.config import settings

LOGGER_NAME = "todoer"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging() -> logging.Logger:
  """Attach handlers to the package logger once; later calls only adjust the level."""
  logger = logging.getLogger(LOGGER_NAME)
  logger.setLevel(str(settings.log_level or "INFO").upper())
  if logger.handlers:
    return logger

  fmt = logging.Formatter(_FORMAT)
  console = logging.StreamHandler()
  console.setFormatter(fmt)
  logger.addHandler(console)

  if settings.log_file:
    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(log_path), maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
  return logger


def get_logger(name: str | None = None) -> logging.Logger:
  if not name:
    return logging.getLogger(LOGGER_NAME)
  return logging.getLogger(f"{LOGGER_NAME}.{name}")
