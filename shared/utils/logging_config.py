"""Centralized logging configuration for limbcal.

Usage:
    from shared.utils.logging_config import setup_logging

    # stderr + logs/<run_name>.log:
    setup_logging(run_name="simulate")

    # With debug level (per-frame classifier state):
    setup_logging(run_name="simulate", debug=True)

    # Custom log directory:
    setup_logging(run_name="bench", log_dir="/var/log/limbcal")

    # Explicit file path:
    setup_logging(log_file="/tmp/limbcal.log")
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

MAX_BYTES = 2 * 1024 * 1024  # 2 MB
BACKUP_COUNT = 3

# project_root/logs/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_LOG_DIR = _PROJECT_ROOT / "logs"


def resolve_log_file(
    run_name: str | None = None,
    log_dir: str | Path | None = None,
    log_file: str | None = None,
) -> str | None:
    """Pick the log file for a run; an explicit path wins over run_name."""
    if log_file:
        return log_file
    if not run_name:
        return None
    target_dir = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    return str(target_dir / f"{run_name}.log")


def setup_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
    fmt: str = DEFAULT_FORMAT,
    max_bytes: int = MAX_BYTES,
    backup_count: int = BACKUP_COUNT,
    *,
    run_name: str | None = None,
    log_dir: str | Path | None = None,
    debug: bool = False,
) -> str | None:
    """Configure the root logger once per entry point.

    Returns the log file path in use, or None when logging to stderr only.
    """
    if debug:
        level = logging.DEBUG

    resolved_log_file = resolve_log_file(run_name, log_dir, log_file)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if resolved_log_file:
        Path(resolved_log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                resolved_log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        )
    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)

    if resolved_log_file:
        logging.getLogger("limbcal").info("Logging to %s", resolved_log_file)
    return resolved_log_file
