#!/usr/bin/env python3

"""
Test helpers shared by the ``tests/`` modules: the standard runner factory,
temporary directories, output/exit recorders and a session factory that never
leaves the interpreter.
"""

import contextlib
import logging
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, Optional

from poolprobe.config.config_schema import HarnessConfig
from poolprobe.core.session import TestSession
from poolprobe.markup import strip_markup

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def temp_directory(prefix: str = "poolprobe-test-") -> Iterator[Path]:
    """Context manager for a temporary directory removed on exit."""
    with tempfile.TemporaryDirectory(prefix=prefix) as temp_dir:
        yield Path(temp_dir)


class RecordingPrinter:
    """Printer double that keeps every line the session emits."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, text: str) -> None:
        self.lines.append(text)

    @property
    def plain(self) -> list[str]:
        """Recorded lines with markup removed."""
        return [strip_markup(line) for line in self.lines]

    def contains(self, fragment: str) -> bool:
        return any(fragment in line for line in self.plain)

    def count(self, fragment: str) -> int:
        return sum(1 for line in self.plain if fragment in line)


class ExitRecorder:
    """Stand-in for ``sys.exit`` that records codes instead of raising."""

    def __init__(self) -> None:
        self.codes: list[int] = []

    def __call__(self, code: int) -> None:
        self.codes.append(code)

    @property
    def last(self) -> Optional[int]:
        return self.codes[-1] if self.codes else None


def make_session(
    name: str = "unit", config: Optional[HarnessConfig] = None
) -> tuple[TestSession, RecordingPrinter, ExitRecorder]:
    """A session wired to recorders, with the project root at the current directory."""
    printer = RecordingPrinter()
    exits = ExitRecorder()
    session = TestSession(name, config=config or HarnessConfig(color=False), printer=printer, exit_func=exits)
    return session, printer, exits


def create_standard_test_runner(module_test_function: Callable[[], bool]) -> Callable[[], bool]:
    """
    Create a standardized test runner function.

    Example:
        run_comprehensive_tests = create_standard_test_runner(my_module_tests)
    """

    def run_comprehensive_tests() -> bool:
        """Run comprehensive tests using standardized test runner pattern."""
        try:
            return module_test_function()
        except Exception as e:
            logger.error(f"Test execution failed: {e}", exc_info=True)
            print(f"❌ Test execution failed: {e}")
            return False

    return run_comprehensive_tests


def run_suite(suite: Any, tests: list[tuple[str, Callable[[], Any], str]]) -> bool:
    """Run ``(name, func, summary)`` entries on ``suite`` and return its verdict."""
    suite.start_suite()
    for name, func, summary in tests:
        suite.run_test(name, func, summary)
    return suite.finish_suite()


__all__ = [
    "ExitRecorder",
    "RecordingPrinter",
    "create_standard_test_runner",
    "make_session",
    "run_suite",
    "temp_directory",
]
