"""Logging for ``ledger_recon``.

Modules log through ``get_logger("ledger_recon.<module>")`` with
``event key=value`` messages. Only the CLI calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import os
import sys

_ROOT = "ledger_recon"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def _level(value: int | str | None) -> int:
    if value is None:
        value = os.getenv("LEDGER_RECON_LOG_LEVEL", "INFO")
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def configure_logging(level: int | str | None = None) -> None:
    """Send ``ledger_recon`` records to stderr; later calls are ignored.

    ``level`` falls back to ``LEDGER_RECON_LOG_LEVEL``, then ``INFO``.
    """

    global _configured
    if _configured:
        return

    root = logging.getLogger(_ROOT)
    for h in [h for h in root.handlers if isinstance(h, logging.NullHandler)]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(_level(level))
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not _configured and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)
