"""
Logging for the compiler: one timestamped file per run plus console output.
Old run logs are pruned on startup.
"""
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Union

LOGGER_NAME = "edi_spec_compiler"

# Thread name distinguishes documents compiled in parallel
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(threadName)s | %(message)s'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'


def setup_logger(log_dir: str = "logs", log_retention_days: int = 10,
                 console_level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Configure the compiler logger for one CLI run.

    Args:
        log_dir: Directory holding compiler_<timestamp>.log files
        log_retention_days: Run logs older than this are deleted first
        console_level: Level of the console handler; the file always gets DEBUG

    Returns:
        Configured logger instance
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    deleted = cleanup_old_logs(log_path, log_retention_days)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    log_file = log_path / f"compiler_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level.upper() if isinstance(console_level, str) else console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info(f"Log file created: {log_file}")
    if deleted:
        logger.debug(f"Removed {deleted} run log(s) older than {log_retention_days} days")

    return logger


def cleanup_old_logs(log_dir: Path, retention_days: int) -> int:
    """Delete *.log files older than retention_days; returns how many went."""
    if not log_dir.exists():
        return 0

    cutoff = time.time() - retention_days * 86400
    deleted = 0
    for log_file in log_dir.glob("*.log"):
        try:
            if log_file.stat().st_mtime < cutoff:
                log_file.unlink()
                deleted += 1
        except OSError:
            # Locked by another run
            continue
    return deleted


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
