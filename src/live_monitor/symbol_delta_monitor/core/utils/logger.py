import logging
import os
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.parent
LOG_DIR = PROJECT_ROOT / "logs" / "symbol_delta_monitor"

# every module logger lives under this name and propagates to it
PACKAGE_LOGGER = "live_monitor.symbol_delta_monitor"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = PACKAGE_LOGGER,
    log_dir: str = None,
    level=logging.INFO,
    log_to_file: bool = True,
) -> logging.Logger:
    """
    Attach console (and optionally daily file) output to a logger

    Calling it again for a configured logger only updates the level.

    Args:
        name: logger to configure, normally PACKAGE_LOGGER
        log_dir: where the daily log file goes (default: LOG_DIR)
        level: level as int or name, e.g. "DEBUG"
        log_to_file: also write <last name part>_<YYYYMMDD>.log

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    if logger.handlers:
        logger.setLevel(level)
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_to_file:
        if log_dir is None:
            log_dir = LOG_DIR

        os.makedirs(log_dir, exist_ok=True)

        module_name = name.split(".")[-1]
        log_filename = f"{module_name}_{datetime.now().strftime('%Y%m%d')}.log"
        log_filepath = os.path.join(log_dir, log_filename)

        file_handler = logging.FileHandler(log_filepath, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_filepath}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; output is configured once on PACKAGE_LOGGER"""
    return logging.getLogger(name)
