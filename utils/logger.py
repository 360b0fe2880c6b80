# Logs optimization run information to the user's selected output, configured once per process

import logging
import os
from datetime import datetime
from typing import Optional

_logger_configured = False
_log_file_path = None

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - %(name)s.%(funcName)s:%(lineno)d - %(message)s'


def _env_level(default: int) -> int:
    level_name = os.environ.get("STRATOPT_LOG_LEVEL")
    if not level_name:
        return default
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else default


def setup_logging(base_name: str = "stratopt", level=logging.INFO, log_dir: Optional[str] = None) -> str:
    """
    Set up the global logging configuration. Should be called once at application startup.

    The level and directory can be overridden with the STRATOPT_LOG_LEVEL and
    STRATOPT_LOG_DIR environment variables, and STRATOPT_LOG_CONSOLE=1 adds a
    stream handler next to the file handler.

    Returns the log file path.
    """
    global _logger_configured, _log_file_path

    if _logger_configured:
        return _log_file_path

    log_dir = os.environ.get("STRATOPT_LOG_DIR", log_dir or "logs")
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
    _log_file_path = os.path.join(log_dir, f"{base_name}_{timestamp}.log")

    handlers = [logging.FileHandler(_log_file_path)]
    if os.environ.get("STRATOPT_LOG_CONSOLE", "").lower() in ("1", "true", "yes"):
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=_env_level(level),
        format=LOG_FORMAT,
        handlers=handlers
    )

    _logger_configured = True
    return _log_file_path


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance. Automatically sets up logging if not already configured.

    Args:
        name: Logger name. If None, uses the calling module's name.
    """
    if not _logger_configured:
        setup_logging()

    if name is None:
        # Automatically determine the calling module's name
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return logging.getLogger(name)
