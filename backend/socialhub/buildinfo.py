"""Build metadata, captured once when the process imports this module."""

from __future__ import annotations

import time
from importlib import metadata

DISTRIBUTION = "socialhub"

PROCESS_STARTED_AT = time.monotonic()


def _distribution_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        # Running from a source checkout without an install.
        return "0.0.0+unknown"


VERSION = _distribution_version()


def uptime_seconds() -> int:
    return int(time.monotonic() - PROCESS_STARTED_AT)
