"""Debug logging setup.

Diagnostics go to a log file so they never interleave with menu frames
painted on the terminal.
"""

from __future__ import annotations

import logging
from pathlib import Path

from platformdirs import user_log_dir

from .config import APP_NAME, ENV_DEBUG, env_flag

LOG_PATH = Path(user_log_dir(APP_NAME, appauthor=False)) / f"{APP_NAME}.log"
LOG_FORMAT = "%(asctime)s %(process)d %(name)s %(levelname)s: %(message)s"


def configure_logging(debug: bool = False, log_path: Path | None = None) -> Path | None:
    """Attach a debug file handler to the package logger when requested.

    Debug output is enabled by ``debug`` or the ``TIDYMAC_DEBUG`` switch.
    Returns the log file path in use, or ``None`` when logging stays off.
    """
    if not (debug or env_flag(ENV_DEBUG)):
        return None
    target = log_path if log_path is not None else LOG_PATH
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError:
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger = logging.getLogger(APP_NAME)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.debug("debug logging enabled")
    return target
