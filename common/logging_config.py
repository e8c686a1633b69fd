import logging
import os
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component logger (e.g., 'server', 'storage')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str, upload_id: Optional[str] = None) -> logging.Logger | logging.LoggerAdapter:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)
        upload_id: Optional upload identifier prefixed to every message

    Returns:
        Logger instance, or an adapter tagging records with the upload identifier
    """
    logger = logging.getLogger(name)

    if upload_id:
        return UploadLogAdapter(logger, {'upload_id': upload_id})

    return logger


class UploadLogAdapter(logging.LoggerAdapter):
    """Prefix log messages with the upload identifier they concern."""

    def process(self, msg, kwargs):
        return f"[upload={self.extra['upload_id']}] {msg}", kwargs
