"""
Logger Module
Configures and provides logging functionality
"""
import logging
import sys
from pathlib import Path
from datetime import datetime

import colorlog


def setup_logger(name='tagquest', log_dir='./logs', level='INFO', verbose=False, log_to_file=True):
    """
    Set up a logger with colored console output and file logging

    Child loggers of ``name`` (for example ``tagquest.rule_engine``) inherit
    these handlers.

    Args:
        name: Logger name
        log_dir: Directory to store log files
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        verbose: Enable verbose logging
        log_to_file: Also write a timestamped log file under log_dir

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, level.upper(), logging.INFO)

    logger.setLevel(log_level)

    # Clear existing handlers
    logger.handlers = []

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        '%(log_color)s%(levelname)-8s%(reset)s %(blue)s[%(name)s]%(reset)s %(message)s',
        datefmt=None,
        reset=True,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_to_file:
        log_dir_path = Path(log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir_path / f'{name}_{timestamp}.log'

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

        logger.debug(f"Logger initialized - Log file: {log_file}")

    return logger
