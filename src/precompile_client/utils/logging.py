"""
Structured logging for the precompile client.

Thin layer over the standard library: loggers live under the
``precompile_client`` namespace, context travels in ``extra=`` dicts and
is rendered by ContextFormatter. The library installs only a NullHandler;
applications (or the CLI) call configure_logging().
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "precompile_client"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# LogRecord attributes that are not user context
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


class ContextFormatter(logging.Formatter):
    """Append ``extra=`` context to the formatted message as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if not context:
            return base
        rendered = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{base} [{rendered}]"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package namespace.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        Logger instance.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(
    level: int = logging.INFO,
    stream: Optional[TextIO] = None,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attach a stream handler with ContextFormatter to the package logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Logging level for the package logger.
        stream: Output stream (stderr by default).
        fmt: Log record format.

    Returns:
        The package root logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_precompile_client", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ContextFormatter(fmt))
    handler._precompile_client = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
    return root


__all__ = [
    "ROOT_LOGGER_NAME",
    "ContextFormatter",
    "get_logger",
    "configure_logging",
]
