"""
Logging setup for the traffic meter.

Every module logs through `logging.getLogger(__name__)`, which places it
under the "trafficmeter" hierarchy; this module only configures the root
of that hierarchy.
"""

import logging

logger = logging.getLogger("trafficmeter")
formatter = logging.Formatter(
    "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S"
)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single stream handler on the "trafficmeter" logger.

    Safe to call more than once; existing handlers are replaced so repeated
    calls do not duplicate output.
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False
    return logger
