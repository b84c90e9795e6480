import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from .config import get_settings

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'

logger = logging.getLogger("rncp_service")

file_handler = None


def setup_logging(log_dir: Optional[str] = None, level: Optional[str] = None):
    """Configure the root logger: console always, daily rotated file when a log dir is set."""
    global file_handler
    cfg = get_settings()
    log_dir = cfg.RNCP_LOG_DIR if log_dir is None else log_dir
    level = level or cfg.RNCP_LOG_LEVEL

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)
    # Close previous file handler if it exists
    close_logging()
    handlers = []
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(os.path.abspath(log_dir), 'rncp.log')
        # Daily rotation, keep 14 days
        file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=14)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)
    root_logger.handlers = handlers
    if file_handler is not None:
        root_logger.info("[BOOT] Logging system initialized and writing to %s", file_handler.baseFilename)
    else:
        root_logger.info("[BOOT] Logging system initialized (console only)")


def close_logging():
    global file_handler
    if file_handler:
        file_handler.close()
        file_handler = None
