import logging

from .config import LOG_LEVEL

_LOGGERS = {}


def get_logger(name: str) -> logging.Logger:
    """
    Create or retrieve a named logger under the ``ballotbox`` namespace.

    One console handler per logger; repeated calls return the cached instance
    so handlers are never stacked.
    """
    if name in _LOGGERS:
        return _LOGGERS[name]

    logger = logging.getLogger(f"ballotbox.{name}")
    logger.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)
    logger.propagate = False

    _LOGGERS[name] = logger
    return logger
