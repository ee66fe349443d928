# utils/logger.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def get_logger(name, level=logging.INFO):
    """
    Return a named logger with a single stream handler attached.

    Every module in the project logs through a logger obtained here so that
    output shares one format. Calling it twice for the same name does not
    stack handlers.

    Args:
        name (str): Logger name, usually the package name ("scraper",
            "dispatcher", ...)
        level (int, optional): Initial log level. Defaults to logging.INFO.

    Returns:
        logging.Logger: Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def set_verbose(verbose, names=("scraper", "dispatcher", "storage")):
    """Switch the project loggers between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    for name in names:
        get_logger(name).setLevel(level)
