from __future__ import annotations

import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_LEVEL_ENV = "GALLICAGRAM_LOG_LEVEL"
QUIET_LOGGERS = ("httpx", "httpcore", "matplotlib")


def configure_logging(level: str | None = None) -> None:
    level = level or os.getenv(LOG_LEVEL_ENV, "INFO")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request line at INFO.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
