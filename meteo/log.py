import logging
import os
from datetime import date
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def setup_logging(verbose: bool = False, log_dir: Optional[Path] = None) -> Path:
    """Configure the root logger for CLI and server runs.

    Records go to a rotating file named after the current date; the console
    only gets warnings so rendered tables stay readable. Returns the log file path.
    """
    log_dir = Path(log_dir) if log_dir else Path(os.getcwd()) / "logs"
    if not log_dir.exists():
        os.makedirs(log_dir)

    log_path = log_dir / f"{date.today().isoformat()}.log"
    level = logging.DEBUG if verbose else logging.INFO

    file_handler = RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
    file_handler.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[console, file_handler],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("File logging initialized: file=%s level=%s", log_path, logging.getLevelName(level))
    return log_path
