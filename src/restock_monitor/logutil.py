from __future__ import annotations

import logging
import os

from .errors import LogSetupError


DEBUG_LOGGER_NAME = "restock_monitor.debug"

_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _file_handler(path: str) -> logging.FileHandler:
    # Plain append, never rotated: the files are the audit trail of past runs.
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        raise LogSetupError(f"cannot open log stream {path}: {e}") from e


def setup_logging(
    *,
    level: str = "INFO",
    log_file: str | None = None,
    debug_file: str | None = None,
    console: bool = True,
) -> None:
    """Install the operational log (console + file) and the separate debug stream.

    Both files are opened in append mode. The debug logger does not propagate,
    so false-positive diagnostics never reach the operational log.
    """
    root = logging.getLogger()

    # Avoid duplicate handlers when setup runs more than once in a process.
    for h in list(root.handlers):
        root.removeHandler(h)

    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    formatter = logging.Formatter(_FORMAT)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    if log_file:
        file_handler = _file_handler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    debug_logger = logging.getLogger(DEBUG_LOGGER_NAME)
    for h in list(debug_logger.handlers):
        debug_logger.removeHandler(h)
        h.close()
    debug_logger.setLevel(logging.DEBUG)
    if debug_file:
        debug_logger.propagate = False
        debug_handler = _file_handler(debug_file)
        debug_handler.setFormatter(logging.Formatter("%(message)s"))
        debug_logger.addHandler(debug_handler)
    else:
        debug_logger.propagate = True


def debug_stream() -> logging.Logger:
    return logging.getLogger(DEBUG_LOGGER_NAME)
