"""
Logging Configuration
Centralized logging setup for the application
"""
import io
import logging
import sys
from pathlib import Path
from datetime import datetime


def setup_logging(log_dir: Path = None, log_level: str = 'INFO',
                  console_output: bool = True) -> None:
    """
    Setup logging configuration

    Args:
        log_dir: Directory for log files (None = no file logging)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        console_output: Whether to output to console
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    logger.handlers = []

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console_output:
        # Entity labels and script names may carry non-ASCII characters
        console_handler = logging.StreamHandler(
            io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
        )
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir / f'dictionary_{timestamp}.log'

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")
