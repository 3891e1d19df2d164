"""Run log file configuration."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from kape_runner.configuration.runtime_settings import LoggingSettings

LOG_FORMAT = "%(asctime)s [pid %(process)d] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "kape_runner"


class DatedRotatingFileHandler(RotatingFileHandler):
    """Size-rotating handler that renames full files with a date suffix.

    `run.log` becomes `run_20240131_142501.log`; rotated files are never
    overwritten by later rotations.
    """

    def __init__(self, filename: Path | str, max_bytes: int) -> None:
        super().__init__(filename, maxBytes=max_bytes, backupCount=1, encoding="utf-8")
        self.namer = self._dated_name

    def _dated_name(self, default_name: str) -> str:
        base = Path(self.baseFilename)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        candidate = base.with_name(f"{base.stem}_{stamp}{base.suffix}")
        counter = 1
        while candidate.exists():
            candidate = base.with_name(f"{base.stem}_{stamp}_{counter}{base.suffix}")
            counter += 1
        return str(candidate)


def configure_run_logging(
    settings: LoggingSettings,
    work_dir: Path,
    *,
    console: bool = True,
) -> Path:
    """Attach the rotating run log (and optionally stderr) to the package logger."""
    work_dir.mkdir(parents=True, exist_ok=True)
    log_path = work_dir / settings.file_name
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(settings.level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    file_handler = DatedRotatingFileHandler(log_path, settings.max_bytes)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    logger.propagate = False
    return log_path
