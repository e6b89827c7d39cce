"""
Logging for Statement Ingest.

Modules log through ``get_logger("<layer>")``, which hangs every logger
under the ``statement_ingest`` namespace.  ``configure_logging`` installs
one stderr handler (plus an optional file handler) on that namespace the
first time it runs; later calls only adjust the level, so several pipelines
in one process never duplicate output.

``STATEMENT_INGEST_LOG_LEVEL`` (e.g. ``DEBUG``) overrides the configured
level.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

NAMESPACE = "statement_ingest"
LEVEL_ENV_VAR = "STATEMENT_INGEST_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-34s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handlers: list = []


def resolve_level(level: Union[int, str]) -> int:
    """Turn ``level`` (or the env override) into a numeric logging level.

    Unknown names fall back to ``INFO``.
    """
    override = os.environ.get(LEVEL_ENV_VAR)
    if override:
        level = override
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Attach handlers to the package namespace and set its level.

    Parameters
    ----------
    level:
        Minimum severity, numeric or by name.
    log_file:
        Also write records to this file.  Only honoured on the first call.

    Returns
    -------
    logging.Logger
        The namespace logger.
    """
    numeric = resolve_level(level)
    root = logging.getLogger(NAMESPACE)
    root.setLevel(numeric)

    if not _handlers:
        root.propagate = False
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        console = logging.StreamHandler(sys.stderr)
        _handlers.append(console)
        if log_file:
            _handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

        for handler in _handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)

    for handler in _handlers:
        handler.setLevel(numeric)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{NAMESPACE}.{name}")
