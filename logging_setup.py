"""
Process logging for the registration API.

Handlers log record ids, upload names and outcomes. Form values, Aadhar
and PAN numbers never reach the log.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty below WARNING
QUIET_LOGGERS = ("uvicorn.access", "pymongo", "multipart")


def configure_logging(level: str = "INFO") -> None:
    """Send all records to stdout at ``level``; called once by ``create_app``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
