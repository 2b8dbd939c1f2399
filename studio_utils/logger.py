"""
Logging for Image Studio.

Modules take a child of the ``image_studio`` logger through ``get_logger``;
handlers live only on the parent, which ``setup_logging`` (re)configures.
"""

import logging
import sys
import time
from functools import wraps


LOGGER_NAME = 'image_studio'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger(LOGGER_NAME)


def get_logger(name):
    """Child logger for one engine component, e.g. ``image_studio.crop``."""
    return logger.getChild(name)


def setup_logging(level=logging.INFO, log_file=None):
    """
    Route studio logs to stdout and, optionally, to ``log_file``.

    Calling it again replaces the previous handlers, so Streamlit reruns
    do not duplicate output.
    """
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def log_exceptions(func):
    """Log the traceback of anything ``func`` raises, then let it propagate."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception:
            logger.exception(f"Unhandled error in {func.__qualname__}")
            raise
    return wrapper


def log_performance(func):
    """Log how long each call to ``func`` took, whether it returned or raised."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{func.__qualname__} failed after {time.perf_counter() - start:.3f}s: {e}")
            raise
        logger.info(f"{func.__qualname__} took {time.perf_counter() - start:.3f}s")
        return result
    return wrapper


setup_logging(level=logging.INFO)
