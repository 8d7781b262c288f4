"""
Console and file logging for blueprint runs.

Messages are printed as ``[LEVEL] message`` and appended to
``reports/blueprints/blueprint.log``.  Pipelines receive a
:data:`LogFn` callable instead of importing a global logger, so the
orchestrating tool decides where messages end up.
"""

from __future__ import annotations

import os
from typing import Callable, Optional

LogFn = Callable[..., None]

DEFAULT_LOG_FILE = os.path.join("reports", "blueprints", "blueprint.log")

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "SUCCESS")


def log_message(
    message: str,
    level: str = "INFO",
    *,
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    verbose: bool = False,
) -> None:
    """Print ``message`` and append it to ``log_file``.

    DEBUG messages are only printed when ``verbose`` is set but are always
    written to the log file.
    """
    if level != "DEBUG" or verbose:
        print(f"[{level}] {message}")
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(f"{level}: {message}\n")


def silent_log(message: str, level: str = "INFO") -> None:
    """A :data:`LogFn` that discards everything."""
