import logging
import os
import re
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_LEVEL_ENV_VAR = "LOG_LEVEL"
LOG_DIR_ENV_VAR = "VIGIL_LOG_DIR"
DEFAULT_LOG_SUBDIR = Path(".vigil") / "logs"
MAX_LOG_BYTES = 10 * 1024 * 1024  # 10 MiB
BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True, slots=True)
class LogSettings:
    level: int
    directory: Path

    @classmethod
    def from_environment(cls) -> "LogSettings":
        level_name = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        raw_dir = os.getenv(LOG_DIR_ENV_VAR)
        directory = Path(raw_dir).expanduser() if raw_dir else Path.home() / DEFAULT_LOG_SUBDIR
        return cls(level=level if isinstance(level, int) else logging.INFO, directory=directory)


def log_filename(name: str) -> str:
    """``vigil.rules.engine`` becomes ``vigil_rules_engine.log``."""

    stem = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("_")
    return f"{stem or 'root'}.log"


def _file_handler(settings: LogSettings, name: str) -> logging.Handler | None:
    try:
        settings.directory.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            settings.directory / log_filename(name),
            maxBytes=MAX_LOG_BYTES,
            backupCount=BACKUP_COUNT,
        )
    except OSError:
        # Read-only home directories still get console logging.
        return None


def get_logger(name: str) -> logging.Logger:
    """Return a logger configured with stream and rolling file handlers.

    Handlers are attached once per logger name; records still propagate so a
    host application (or pytest's ``caplog``) sees them too.
    """

    settings = LogSettings.from_environment()
    logger = logging.getLogger(name)
    logger.setLevel(settings.level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler | None] = [
        logging.StreamHandler(),
        _file_handler(settings, name),
    ]
    for handler in handlers:
        if handler is None:
            continue
        handler.setFormatter(formatter)
        handler.setLevel(settings.level)
        logger.addHandler(handler)
    return logger
