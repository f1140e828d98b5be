import logging
import sys
from pythonjsonlogger import jsonlogger

from core.config import settings

def get_logger(name: str):
    """
    Returns a logger for the graph core that writes structured JSON to stdout.
    Extra fields passed through `extra=` end up as top-level JSON keys.
    """
    logger = logging.getLogger(name)

    # Already configured by an earlier call
    if logger.handlers:
        return logger

    logger.setLevel(settings.LOG_LEVEL)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger
