"""Color handling and log formatting for command-line output."""

from __future__ import annotations

import enum
import logging
import os
import sys
from dataclasses import dataclass
from typing import TextIO

LOGGER_NAME = "nexrun"
NO_HEADING_LOGGER = "nexrun.no_heading"
LOG_ENV = "NEXTEST_LOG"

_HANDLER_NAME = "nexrun-output"
_TRACE = 5
_LOG_LEVELS = {
    "off": logging.CRITICAL + 1,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": _TRACE,
}

_BOLD = "1"
_BOLD_RED = "1;31"
_BOLD_YELLOW = "1;33"


@dataclass
class _ColorState:
    override: bool | None = None


_STATE = _ColorState()


def _supports_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colors_enabled(stream: TextIO) -> bool:
    """Return whether styled output should be written to ``stream``.

    An explicit choice made through :meth:`Color.init` wins over detection.
    """
    if _STATE.override is not None:
        return _STATE.override
    return _supports_color(stream)


class Color(enum.Enum):
    """When to produce colored output."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def from_str(cls, text: str) -> Color:
        """Parse ``auto``, ``always`` or ``never``."""
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(
            f"{text} is not a valid option, expected `auto`, `always` or `never`"
        )

    def init(self) -> None:
        """Apply this choice globally and set up logging to stderr.

        The log level is read from the ``NEXTEST_LOG`` environment variable
        and defaults to errors only.
        """
        _STATE.override = {
            Color.AUTO: None,
            Color.ALWAYS: True,
            Color.NEVER: False,
        }[self]

        logger = logging.getLogger(LOGGER_NAME)
        for handler in list(logger.handlers):
            if handler.get_name() == _HANDLER_NAME:
                logger.removeHandler(handler)

        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(LogFormatter())
        handler.addFilter(lambda record: record.levelno >= logging.DEBUG)
        logger.addHandler(handler)

        level_name = os.environ.get(LOG_ENV, "").strip().lower()
        logger.setLevel(_LOG_LEVELS.get(level_name, logging.ERROR))

    def should_colorize(self, stream: TextIO) -> bool:
        """Return whether output to ``stream`` should be colored."""
        if self is Color.AUTO:
            return _supports_color(stream)
        return self is Color.ALWAYS

    def to_arg(self) -> str:
        """Return the matching ``--color=...`` argument for cargo."""
        return f"--color={self.value}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class OutputContext:
    """Output settings shared by the commands."""

    color: Color = Color.AUTO


class LogFormatter(logging.Formatter):
    """Formats records as ``<level>: <message>``.

    Records from the ``nexrun.no_heading`` logger are written bare. Records
    below debug level produce no text. ``colorize`` forces styling on or off;
    when left as None it follows the settings for stderr.
    """

    def __init__(self, colorize: bool | None = None) -> None:
        super().__init__()
        self.colorize = colorize

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.name == NO_HEADING_LOGGER:
            return message

        if record.levelno >= logging.ERROR:
            heading, style = "error", _BOLD_RED
        elif record.levelno >= logging.WARNING:
            heading, style = "warning", _BOLD_YELLOW
        elif record.levelno >= logging.INFO:
            heading, style = "info", _BOLD
        elif record.levelno >= logging.DEBUG:
            heading, style = "debug", _BOLD
        else:
            return ""

        colorize = self.colorize if self.colorize is not None else colors_enabled(sys.stderr)
        if colorize:
            heading = f"\x1b[{style}m{heading}\x1b[0m"
        return f"{heading}: {message}"