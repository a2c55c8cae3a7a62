from __future__ import annotations

import logging
import os

DEFAULT_LEVEL = logging.INFO
_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _level_from_env() -> int:
    name = (os.environ.get("LOG_LEVEL") or "").strip().upper()
    if not name:
        return DEFAULT_LEVEL
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else DEFAULT_LEVEL


def configure_logging() -> int:
    """Set the root level from LOG_LEVEL and return it.

    The Lambda runtime installs its own root handler before our code runs; when
    one is present only the levels change so records keep the request id prefix.
    """
    level = _level_from_env()
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        for h in root.handlers:
            h.setLevel(level)
    else:
        logging.basicConfig(level=level, format=_FORMAT)

    # Wire-level request logs stay off even when LOG_LEVEL=DEBUG.
    for name in ("botocore", "boto3", "urllib3"):
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    return level
