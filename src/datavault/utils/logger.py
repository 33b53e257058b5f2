import logging
import os
import sys

from datavault.config import settings

ROOT_LOGGER = "datavault"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_root() -> logging.Logger:
    """
    Attach the stdout and file handlers to the package logger once.
    Module loggers below it propagate here.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_file = logging.FileHandler(
        os.path.join(settings.LOG_DIR, "datavault.log"), mode="a", encoding="utf-8"
    )
    log_file.setFormatter(formatter)
    root.addHandler(log_file)

    # uvicorn installs its own root handlers
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, e.g. get_logger(__name__) → 'datavault.core.reports'."""
    _configure_root()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
