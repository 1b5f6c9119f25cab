"""Boxed, coloured console logging for agent progress."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

from termcolor import colored

LOGGER_NAME = "stepagents"
LOG_LEVEL_VARIABLE = "STEPAGENTS_LOG_LEVEL"
FALLBACK_WIDTH = 78

_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


@dataclass(frozen=True)
class _Style:
    prefix: str
    split: int
    border: str
    prefix_color: str
    content_color: str
    content_bold: bool
    closed: bool = True


_STYLES = (
    _Style("Observation:", 12, "yellow", "yellow", "green", False),
    _Style("Error:", 6, "red", "red", "white", True, closed=False),
    _Style("Executing tool call:", 21, "magenta", "magenta", "cyan", False),
    _Style("Plan:", 5, "red", "red", "blue", False),
    _Style("Final answer:", 13, "green", "green", "white", True),
    _Style("Code:", 5, "yellow", "yellow", "magenta", True),
)


def terminal_width() -> int:
    """Usable box width: the terminal width minus the side borders."""
    try:
        columns = os.get_terminal_size().columns
    except (OSError, ValueError):
        return FALLBACK_WIDTH
    return max(columns - 2, 0)


def render_box(message: str, width: int | None = None, use_color: bool = True) -> str:
    """Draw ``message`` inside a box, styled by its leading keyword."""
    if width is None:
        width = terminal_width()

    def paint(text: str, color: str, bold: bool = False) -> str:
        if not use_color:
            return text
        return colored(text, color, attrs=["bold"] if bold else None, force_color=True)

    top = "╔" + "═" * width + "═"
    bottom = "╚" + "═" * width + "═"
    side = "║ "

    for style in _STYLES:
        if message.startswith(style.prefix):
            head, content = message[: style.split], message[style.split :]
            lines = [
                "",
                paint(top, style.border),
                paint(side, style.border)
                + paint(head, style.prefix_color, bold=True)
                + paint(content, style.content_color, bold=style.content_bold),
            ]
            if style.closed:
                lines.append(paint(bottom, style.border))
            return "\n".join(lines)

    return "\n".join(
        [
            "",
            paint(top, "blue"),
            paint(side, "blue") + paint(message, "blue"),
            paint(bottom, "blue"),
        ]
    )


class BoxedFormatter(logging.Formatter):
    """Formats each record as a boxed, coloured block."""

    def __init__(self, width: int | None = None, use_color: bool = True) -> None:
        super().__init__()
        self.width = width
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        return render_box(record.getMessage(), self.width, self.use_color)


class _BoxedHandler(logging.StreamHandler):
    pass


def get_logger() -> logging.Logger:
    """Return the package logger."""
    return logging.getLogger(LOGGER_NAME)


def init_logger_from_env(env: Mapping[str, str] | None = None) -> logging.Logger:
    """Install the boxed console handler once, with its level from the environment.

    The level comes from ``STEPAGENTS_LOG_LEVEL`` (off, error, warn, info,
    debug, trace); anything else means info. Later calls change nothing.
    """
    logger = get_logger()
    if any(isinstance(handler, _BoxedHandler) for handler in logger.handlers):
        return logger

    env = os.environ if env is None else env
    level = _LEVELS.get(env.get(LOG_LEVEL_VARIABLE, "").lower(), logging.INFO)

    handler = _BoxedHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(BoxedFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger