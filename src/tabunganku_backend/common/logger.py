'''
Application logger. Import `log` from here; never configure logging elsewhere.
'''
import logging
import sys

from .config import settings


def setup_logger(name: str = "TabunganKu-backend") -> logging.Logger:
    """
    Builds the `TabunganKu-backend` logger at `settings.LOG_LEVEL`, writing
    to stdout. Calling it again returns the same logger without stacking
    handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL.upper())
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(module)s - %(levelname)s\n - %(message)s'
        ))
        logger.addHandler(handler)

    # passlib probes bcrypt's version on first hash and logs a harmless
    # traceback with bcrypt 4.x
    logging.getLogger("passlib").setLevel(logging.ERROR)
    return logger


log = setup_logger()
