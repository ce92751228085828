#!/usr/bin/env python3

"""
Markup Rendering Utilities

The harness writes its output as plain strings carrying paired color tags such
as ``<red>...</red>``. This module is the default renderer for those strings:
it turns known tags into ANSI codes for a terminal, or strips them for plain
output. Unknown tags are left untouched.

Features:
- ANSI color constants for all standard colors
- Static methods for easy text formatting
- Tag rendering and stripping for harness markup
"""

import re
import sys
from typing import Any, Callable, Optional, TextIO


class Colors:
    """ANSI color codes for terminal output with formatting utilities."""

    # Standard ANSI color codes
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    MAGENTA = '\033[95m'
    CYAN = '\033[96m'
    WHITE = '\033[97m'
    GRAY = '\033[90m'
    LIGHT_RED = '\033[1;91m'
    LIGHT_CYAN = '\033[1;96m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'
    END = '\033[0m'  # Reset to default
    RESET = '\033[0m'

    @staticmethod
    def colorize(text: str, color_code: str) -> str:
        """Wrap text with the given color code and a reset."""
        return f"{color_code}{text}{Colors.END}"

    @staticmethod
    def red(text: str) -> str:
        return Colors.colorize(text, Colors.RED)

    @staticmethod
    def yellow(text: str) -> str:
        return Colors.colorize(text, Colors.YELLOW)


# Tag name -> ANSI code
TAG_COLORS: dict[str, str] = {
    "red": Colors.RED,
    "green": Colors.GREEN,
    "yellow": Colors.YELLOW,
    "blue": Colors.BLUE,
    "magenta": Colors.MAGENTA,
    "cyan": Colors.CYAN,
    "white": Colors.WHITE,
    "gray": Colors.GRAY,
    "light_red": Colors.LIGHT_RED,
    "light_cyan": Colors.LIGHT_CYAN,
    "bold": Colors.BOLD,
    "underline": Colors.UNDERLINE,
}

_TAG_PATTERN = re.compile(r"<(/?)([a-z_]+)>")
_ANSI_PATTERN = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


def render_markup(text: str, ansi: bool = True) -> str:
    """Render known color tags as ANSI codes, or strip them when ``ansi`` is False.

    Closing tags restore the color of the enclosing tag, so nested markup such
    as ``<blue>a <red>b</red> c</blue>`` keeps ``c`` blue.
    """
    stack: list[str] = []

    def _replace(match: "re.Match[str]") -> str:
        closing, name = match.group(1), match.group(2)
        if name not in TAG_COLORS:
            return match.group(0)
        if not ansi:
            return ""
        if not closing:
            stack.append(TAG_COLORS[name])
            return TAG_COLORS[name]
        if stack:
            stack.pop()
        return Colors.RESET + (stack[-1] if stack else "")

    return _TAG_PATTERN.sub(_replace, text)


def strip_markup(text: str) -> str:
    """Remove known color tags from text."""
    return render_markup(text, ansi=False)


def upper_outside_tags(text: str) -> str:
    """Uppercase text while leaving markup tags untouched."""
    parts = re.split(r"(</?[a-z_]+>)", text)
    return "".join(part if _TAG_PATTERN.fullmatch(part) else part.upper() for part in parts)


def has_ansi_codes(text: Any) -> bool:
    """Check if text already contains ANSI color codes."""
    return '\033[' in str(text)


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI color codes from text."""
    return _ANSI_PATTERN.sub('', text)


def create_printer(stream: Optional[TextIO] = None, ansi: bool = True) -> Callable[[str], None]:
    """Build the default output callable used by a test session."""

    def _print(text: str) -> None:
        target = stream if stream is not None else sys.stdout
        print(render_markup(text, ansi=ansi), file=target)

    return _print


__all__ = [
    "TAG_COLORS",
    "Colors",
    "create_printer",
    "has_ansi_codes",
    "render_markup",
    "strip_ansi_codes",
    "strip_markup",
    "upper_outside_tags",
]
