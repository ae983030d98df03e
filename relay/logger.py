import logging
import os
import sys
import time

ROOT_LOGGER = "relay"


class RelayFormatter(logging.Formatter):
    """
    [ Tue Jan 06 05:32:41 AM UTC 2026 ] : INFO : <context> : Message
    context is the request id attached by the pipeline, 'root' elsewhere.
    """
    converter = time.gmtime

    def __init__(self):
        super().__init__(
            fmt="[ %(asctime)s ] : %(levelname)s : %(context)s : %(message)s",
            datefmt="%a %b %d %I:%M:%S %p UTC %Y",
        )

    def format(self, record):
        if not hasattr(record, "context"):
            record.context = "root"
        return super().format(record)


def _has_console(logger):
    # FileHandler subclasses StreamHandler; match the exact type
    return any(type(h) is logging.StreamHandler for h in logger.handlers)


def _has_file(logger, path):
    return any(
        isinstance(h, logging.FileHandler) and h.baseFilename == path
        for h in logger.handlers
    )


def setup_logger(log_file=None, level=logging.INFO):
    """
    Configure the 'relay' logger. Safe to call repeatedly: each call applies
    the level and adds the file handler if it is new, without duplicating
    handlers. Module loggers (relay.app, relay.pipeline, ...) stay at NOTSET
    and inherit from here.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    formatter = RelayFormatter()

    if not _has_console(logger):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        path = os.path.abspath(log_file)
        if not _has_file(logger, path):
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
