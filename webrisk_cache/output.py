"""Helpers for formatting CLI output and log records across terminals."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "webrisk_cache"


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except Exception:
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "\u2713\u2717"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_icon(passed: bool, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return "[green]\u2713[/green]" if passed else "[red]\u2717[/red]"
    return "[green]OK[/green]" if passed else "[red]X[/red]"


def format_hex(value: bytes | None, limit: int = 16) -> str:
    if not value:
        return "-"
    text = value.hex()
    if len(text) <= limit * 2:
        return text
    return f"{text[: limit * 2]}\u2026" if supports_unicode_output() else f"{text[: limit * 2]}..."


def configure_logging(level: int, console: Console | None = None) -> logging.Logger:
    """Route package log records through a single rich handler."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
