from __future__ import annotations

import logging
import sys

from deploytrack.core.config import get_settings


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    # Configure the root logger once; later calls only adjust the level.
    global _configured
    resolved = (level or get_settings().log_level or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(resolved)
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    # httpx logs every request at INFO, including spreadsheet URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
