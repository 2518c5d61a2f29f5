"""
Logging setup for CLI commands.
"""
import logging
import logging.handlers
from pathlib import Path

from filevault.core.config import settings
from filevault.core.logging_config import LogCategory, _resolve_log_level


def setup_cli_logging(command_name: str, verbose: bool = False) -> logging.Logger:
    """
    Configure logging for a CLI command and return its logger.

    Progress lines go to stderr; when the log directory is writable they are
    also written to ``cli-{command_name}.log`` there.

    Args:
        command_name: Name of the command, used for the logger and log file
        verbose: Log at DEBUG instead of the configured level
    """
    level, _ = _resolve_log_level(settings.log_level)
    if verbose:
        level = logging.DEBUG

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    app_logger = logging.getLogger(LogCategory.APP.value)
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(level)
    app_logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    app_logger.addHandler(console_handler)

    log_dir = Path(settings.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"cli-{command_name}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
            encoding='utf-8'
        )
    except OSError:
        app_logger.warning("Log directory %s is not writable, logging to console only", log_dir)
    else:
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        app_logger.addHandler(file_handler)

    return logging.getLogger(f"{LogCategory.APP.value}.cli.{command_name}")
