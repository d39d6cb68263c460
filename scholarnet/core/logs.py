"""
logging setup for scholarnet.
every module logs under the "scholarnet" hierarchy.
"""

import logging
from typing import Optional

logger = logging.getLogger("scholarnet")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    setup scholarnet logging.
    call once at startup; calling again replaces the handlers.
    """
    formatter = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    logger.setLevel(level)
    logger.addHandler(console_handler)

    # file handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
