"""
core/log.py -- One place for the process-wide logging setup.

Every module logs through logging.getLogger("mintgate.<area>"); only the
entry points (api/main.py and the CLI) call configure_logging().

Passwords and password hashes are never passed to any logger.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler. Safe to call more than once (basicConfig is a no-op after the first)."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, datefmt=DATE_FORMAT)
