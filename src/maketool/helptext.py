"""Normalization of make's self-documenting help output."""

from __future__ import annotations

import re
from typing import Final

# Matches a line that is exactly "Notes"; lines are split on "\n" only.
NOTES_PATTERN: Final[re.Pattern[str]] = re.compile(r"\ANotes\Z")
_TRAILING_WHITESPACE: Final[str] = " \t\r\n"


def is_notes_line(line: str) -> bool:
    """Return True if the line is the trailer sentinel."""

    return NOTES_PATTERN.match(line) is not None


def process_help_output(text: str) -> str:
    """Drop the ``Notes`` trailer section from a help listing.

    Keeps every line before the first line that is exactly ``Notes``. A
    carriage return before the sentinel prevents a match.
    """

    kept: list[str] = []
    for line in text.split("\n"):
        if is_notes_line(line):
            break
        kept.append(line)
    return "\n".join(kept)


def format_help_preamble(text: str) -> str:
    """Return the right-trimmed preamble followed by a blank line, or ""."""

    trimmed = text.rstrip(_TRAILING_WHITESPACE)
    if not trimmed:
        return ""
    return trimmed + "\n\n"


def compose_help(preamble: str, help_output: str) -> str:
    """Join a formatted preamble with a trimmed help listing."""

    return format_help_preamble(preamble) + process_help_output(help_output)
