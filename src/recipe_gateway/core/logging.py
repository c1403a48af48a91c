"""Logging setup and log-injection filtering."""

from __future__ import annotations

import logging
import re

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
MAX_LOG_CHARS = 500

# CSI/OSC escape sequences first, then any remaining C0/C1 control character.
_ANSI_ESCAPE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_for_log(value: object, max_chars: int = MAX_LOG_CHARS) -> str:
    """Return ``value`` as a single printable line safe to write to a log.

    Escape sequences and control characters (including CR and LF) are
    removed so a caller cannot forge log lines, and the result is capped at
    ``max_chars``.
    """
    text = _ANSI_ESCAPE.sub("", str(value))
    text = _CONTROL_CHARS.sub(" ", text)
    if len(text) > max_chars:
        return text[:max_chars] + "...[truncated]"
    return text


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    if not any(getattr(h, "_recipe_gateway", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._recipe_gateway = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())
