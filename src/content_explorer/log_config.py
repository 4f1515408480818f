"""
Logging setup shared by the CLI and the API server.
"""

from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install one stream handler on the package logger.

    ``LOG_LEVEL=debug`` enables debug output when *level* is not given.
    """
    raw_level = (level or os.getenv("LOG_LEVEL", "info")).upper()
    resolved = getattr(logging, raw_level, logging.INFO)

    package_logger = logging.getLogger("content_explorer")
    package_logger.setLevel(resolved)
    if not any(getattr(h, "_content_explorer", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._content_explorer = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
