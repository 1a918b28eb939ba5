import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config.config import settings


def setup_logging(log_dir: str = None):
    """
    Installs the application-wide logging configuration.

    Logs go both to the console and to a file that is rotated once it reaches
    a fixed size.
    """
    log_format = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

    # Everything branches off the root logger.
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    # Drop handlers installed by uvicorn and friends so our format wins.
    if logger.hasHandlers():
        logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(stdout_handler)

    target_dir = Path(log_dir or settings.LOG_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)

    # app.log rolls over to app.log.1 ... app.log.5 past 5 MB.
    file_handler = RotatingFileHandler(
        target_dir / "app.log",
        maxBytes=5*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)
