#!/usr/bin/env python3

"""
core/ledger.py - Assertion Ledger

Keeps the pass/fail/skip counters of a test session and derives the process
exit code from them. The ledger only emits markup strings through the printer
it was given; it never decides how they are rendered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from gettext import ngettext
from typing import Callable

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INCONCLUSIVE = 2

PASS_TAG = "<green>PASS</green>"
FAIL_TAG = "<red>FAIL</red>"
SKIP_TAG = "<yellow>SKIP</yellow>"


def derive_exit_code(failed: int, skipped: int, passed: int) -> int:
    """Map the three counters to an exit code.

    A run with skips and no passes is inconclusive rather than successful.
    """
    if failed:
        return EXIT_FAILURE
    if skipped:
        return EXIT_SUCCESS if passed else EXIT_INCONCLUSIVE
    return EXIT_SUCCESS


def pluralize_assertions(count: int) -> str:
    return ngettext("assertion", "assertions", count)


@dataclass(frozen=True)
class LedgerCounts:
    """Immutable snapshot of the ledger counters."""

    failed: int = 0
    skipped: int = 0
    passed: int = 0

    @property
    def total(self) -> int:
        return self.failed + self.skipped + self.passed

    @property
    def exit_code(self) -> int:
        return derive_exit_code(self.failed, self.skipped, self.passed)


class AssertionLedger:
    """Pass/fail/skip counters with exit code derivation."""

    def __init__(self, emit: Callable[[str], None] | None = None) -> None:
        self._emit = emit or (lambda _text: None)
        self.fail_count = 0
        self.pass_count = 0
        self.skip_count = 0

    def _write(self, tag: str, message: str) -> None:
        self._emit(f"[{tag}] {message}")

    def record_pass(self, message: str) -> None:
        self._write(PASS_TAG, message)
        self.pass_count += 1

    def record_fail(self, message: str, counts_as_failure: bool = True) -> None:
        """Emit a failure; only count it when ``counts_as_failure`` is set."""
        self._write(FAIL_TAG, message)
        if counts_as_failure:
            self.fail_count += 1
        else:
            logger.debug(f"Expected failure not counted: {message}")

    def record_skip(self, message: str) -> None:
        self._write(SKIP_TAG, message)
        self.skip_count += 1

    @property
    def counts(self) -> LedgerCounts:
        return LedgerCounts(failed=self.fail_count, skipped=self.skip_count, passed=self.pass_count)

    def derive_exit_code(self) -> int:
        return derive_exit_code(self.fail_count, self.skip_count, self.pass_count)

    def summary(self) -> str:
        """Markup summary line with per-counter colors and pluralization."""
        counts = self.counts
        fail_color = "red" if counts.failed else "green"
        skip_color = "yellow" if counts.skipped else "green"
        pass_color = "red" if not counts.passed and counts.total else "green"
        return (
            f"<blue>Test results:</blue>"
            f"<{fail_color}> {counts.failed} {pluralize_assertions(counts.failed)} failed</{fail_color}>, "
            f"<{skip_color}>{counts.skipped} {pluralize_assertions(counts.skipped)} skipped</{skip_color}> and "
            f"<{pass_color}>{counts.passed} {pluralize_assertions(counts.passed)} passed</{pass_color}> "
            f"out of a total of <cyan>{counts.total}</cyan> {pluralize_assertions(counts.total)}."
        )


__all__ = [
    "EXIT_FAILURE",
    "EXIT_INCONCLUSIVE",
    "EXIT_SUCCESS",
    "AssertionLedger",
    "LedgerCounts",
    "derive_exit_code",
    "pluralize_assertions",
]
