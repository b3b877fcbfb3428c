from __future__ import annotations

import logging
import sys

from fmtbridge.runtime.env_policy import log_level_from_env

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(level: int | None = None) -> None:
    """Send package logs to stderr; stdout belongs to formatted output and LSP."""
    resolved = log_level_from_env() if level is None else level
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("fmtbridge")
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(resolved)
    package_logger.propagate = False
