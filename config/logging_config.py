"""
Logging setup for Face Attendance Kiosk
"""
import logging
import logging.handlers
from pathlib import Path

from . import settings


def setup_logging(log_level=None, log_dir=None, max_log_size=10 * 1024 * 1024, backup_count=5):
    """
    Configure root logging: console plus rotating file

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default settings.LOG_LEVEL)
        log_dir: Directory for kiosk.log (default settings.LOG_DIR, None disables file logging)
        max_log_size: Maximum size of a log file in bytes
        backup_count: Number of rotated files kept
    """
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    formatter = logging.Formatter(settings.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    log_dir = settings.LOG_DIR if log_dir is None else log_dir
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path / 'kiosk.log',
            maxBytes=max_log_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet chatty libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    return root
