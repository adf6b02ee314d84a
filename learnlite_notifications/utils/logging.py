import logging
import sys
from typing import Optional, Union


def configure_logging(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Simple JSON-ish logger to keep output structured for the worker and publisher.

    A level already set on the named logger (see ``set_level``) is kept unless
    ``level`` is given explicitly.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def set_level(level: Union[int, str], *names: str) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)
