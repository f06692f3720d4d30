"""
Logging Configuration for smoothsim

Module loggers are created with get_logger(__name__) and propagate to the
root logger. Nothing is installed on import; applications (or tests) call
configure_logging() when they want console/file output.
"""

import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path


_logger_instances = {}

VALID_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class UTCFormatter(logging.Formatter):
    """Formatter with UTC ISO 8601 timestamps and optional colour."""

    _COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    _RESET = '\033[0m'

    def __init__(self, use_color=False):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        """
        Format: [TIMESTAMP] [LEVEL] [MODULE] - MESSAGE
        Example: [2026-01-15T18:48:45.262Z] [WARNING] [generator] - Wrong length of measurement vector
        """
        timestamp = datetime.fromtimestamp(
            record.created,
            tz=timezone.utc
        ).isoformat(timespec='milliseconds').replace('+00:00', 'Z')

        module_name = record.name.split('.')[-1] if record.name else "root"

        level = f"[{record.levelname}]"
        if self.use_color:
            level = f"{self._COLORS.get(record.levelname, '')}{level}{self._RESET}"

        message = f"[{timestamp}] {level} [{module_name}] - {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(log_level='INFO', log_file=None, use_color=True):
    """
    Setup centralized logging configuration.

    Args:
        log_level (str): DEBUG, INFO, WARNING, ERROR or CRITICAL. Default: 'INFO'
        log_file (str, optional): Also write records to this file.
        use_color (bool): Colour the level name on the console.

    Returns:
        logging.Logger: Configured root logger instance

    Raises:
        ValueError: If log_level is invalid

    Example:
        >>> logger = configure_logging(log_level='DEBUG', log_file='output/sim.log')
    """
    if not isinstance(log_level, str) or log_level.upper() not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log_level '{log_level}'. Must be one of: {', '.join(VALID_LEVELS)}"
        )
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(UTCFormatter(use_color=use_color))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(UTCFormatter(use_color=False))
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging configured: level={log_level}, file={log_file}")
    else:
        root_logger.info(f"Logging configured: level={log_level}, console only")

    return root_logger


def get_logger(module_name):
    """
    Get a module-specific logger.

    Each module calls this at module level:
        logger = get_logger(__name__)

    Args:
        module_name (str): Name of the module, e.g. "smoothsim.engine"

    Returns:
        logging.Logger: Cached logger instance for the module
    """
    if module_name in _logger_instances:
        return _logger_instances[module_name]

    logger = logging.getLogger(module_name)
    logger.propagate = True

    _logger_instances[module_name] = logger
    return logger


def log_exception(logger, exception):
    """
    Log exception type, message and traceback at ERROR level.

    Example:
        >>> try:
        >>>     fit_ges(y, orders=[1], lags=[1])
        >>> except ModelFitError as e:
        >>>     log_exception(logger, e)
        >>>     raise
    """
    tb_str = traceback.format_exc()

    logger.error(
        f"Exception occurred: {type(exception).__name__}\n"
        f"Message: {str(exception)}\n"
        f"Traceback:\n{tb_str}"
    )
