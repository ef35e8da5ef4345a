import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Attach a console handler to the ``rentflow`` logger.

    Safe to call more than once: the handler is added only the first time,
    later calls just update the level.
    """
    global _configured
    logger = logging.getLogger("rentflow")

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        _configured = True

    return logger
