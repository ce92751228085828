#!/usr/bin/env python3

"""
core/faults.py - Fault Classifier

Two interception points, both scoped to a test session:

1. Runtime faults. Python warnings are routed through ``warnings.showwarning``
   and mapped to a ``FaultSeverity``. Only FATAL faults reach the ledger; the
   rest become debug notes. Faults masked out by the active severity mask are
   dropped silently.
2. Uncaught exceptions. Driver availability problems are recorded as skips,
   anything else as a failure; either way the session is terminated.
"""

from __future__ import annotations

import logging
import sys
import traceback
import warnings
from dataclasses import dataclass
from enum import IntFlag
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Optional

from poolprobe.core.exceptions import DriverCheckError, DriverConnectError
from poolprobe.core.ledger import AssertionLedger

logger = logging.getLogger(__name__)

NO_MESSAGE_PLACEHOLDER = "[No message provided]"


class FaultSeverity(IntFlag):
    """Severity bits of a runtime fault."""

    FATAL = 1
    RECOVERABLE_WARNING = 2
    NOTICE = 4
    STRICT = 8
    DEPRECATED = 16


FULL_MASK = (
    FaultSeverity.FATAL
    | FaultSeverity.RECOVERABLE_WARNING
    | FaultSeverity.NOTICE
    | FaultSeverity.STRICT
    | FaultSeverity.DEPRECATED
)
REDUCED_MASK = FULL_MASK & ~FaultSeverity.NOTICE

SEVERITY_LABELS: dict[FaultSeverity, str] = {
    FaultSeverity.FATAL: "[FATAL ERROR]",
    FaultSeverity.RECOVERABLE_WARNING: "[WARNING]",
    FaultSeverity.NOTICE: "[NOTICE]",
    FaultSeverity.STRICT: "[STRICT]",
    FaultSeverity.DEPRECATED: "[DEPRECATED]",
}


# === FAULT CATEGORIES ===


class FatalFault(Warning):
    """Warning category for faults that must fail the run."""


class NoticeFault(Warning):
    """Warning category for informational notices."""


class StrictFault(Warning):
    """Warning category for strict-mode style complaints."""


# Checked in order; the first matching category wins.
_CATEGORY_SEVERITIES: tuple[tuple[type[Warning], FaultSeverity], ...] = (
    (FatalFault, FaultSeverity.FATAL),
    (NoticeFault, FaultSeverity.NOTICE),
    (ResourceWarning, FaultSeverity.NOTICE),
    (ImportWarning, FaultSeverity.NOTICE),
    (StrictFault, FaultSeverity.STRICT),
    (SyntaxWarning, FaultSeverity.STRICT),
    (DeprecationWarning, FaultSeverity.DEPRECATED),
    (PendingDeprecationWarning, FaultSeverity.DEPRECATED),
    (FutureWarning, FaultSeverity.DEPRECATED),
)


def severity_for_category(category: type[Warning]) -> FaultSeverity:
    """Map a warning category to a fault severity."""
    for base, severity in _CATEGORY_SEVERITIES:
        if issubclass(category, base):
            return severity
    return FaultSeverity.RECOVERABLE_WARNING


@dataclass(frozen=True)
class FaultRecord:
    """A runtime fault as seen by the classifier. Consumed once, never stored."""

    severity: FaultSeverity
    message: str
    filename: str
    lineno: int

    @property
    def label(self) -> str:
        return SEVERITY_LABELS.get(self.severity, "")

    @property
    def location(self) -> str:
        return f"{self.filename} line {self.lineno}"

    @property
    def is_fatal(self) -> bool:
        return self.severity == FaultSeverity.FATAL


class FaultClassifier:
    """Maps runtime faults and uncaught exceptions to ledger outcomes."""

    def __init__(
        self,
        ledger: AssertionLedger,
        debug_printer: Callable[[str], Any],
        project_dir: Path,
        terminate: Callable[[], int],
        mask: FaultSeverity = FULL_MASK,
    ) -> None:
        self.ledger = ledger
        self.project_dir = project_dir
        self.mask = mask
        self._debug_printer = debug_printer
        self._terminate = terminate
        self._warnings_scope: Optional[warnings.catch_warnings] = None
        self._previous_excepthook: Optional[Callable[..., Any]] = None

    # --- Lifecycle ---

    @property
    def installed(self) -> bool:
        return self._warnings_scope is not None

    def install(self) -> None:
        """Route warnings and uncaught exceptions to this classifier."""
        if self.installed:
            return
        self._warnings_scope = warnings.catch_warnings()
        self._warnings_scope.__enter__()
        warnings.simplefilter("always")
        warnings.showwarning = self._show_warning
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        logger.debug("Fault classifier installed")

    def uninstall(self) -> None:
        """Restore the warning machinery and exception hook saved by ``install``."""
        scope = self._warnings_scope
        if scope is None:
            return
        self._warnings_scope = None
        scope.__exit__(None, None, None)
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        logger.debug("Fault classifier uninstalled")

    def set_mask(self, mask: FaultSeverity) -> None:
        self.mask = mask
        logger.debug(f"Fault severity mask set to {mask!r}")

    # --- Runtime faults ---

    def _show_warning(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: Any = None,
        line: Optional[str] = None,
    ) -> None:
        self.handle_fault(severity_for_category(category), str(message), filename, lineno)

    def handle_fault(self, severity: FaultSeverity, message: str, filename: str, lineno: int) -> bool:
        """Classify a runtime fault. Returns False when the mask drops it."""
        if not severity & self.mask:
            return False

        record = FaultRecord(severity=severity, message=message, filename=filename, lineno=lineno)
        if record.is_fatal:
            self.ledger.record_fail(
                f'<red>A critical error has been caught:</red> '
                f'<light_red>"{record.label} {record.message}" in {record.location}</light_red>'
            )
        else:
            logger.debug(f"Non-critical fault {record.label} {record.message} in {record.location}")
            self._debug_printer(
                f'<yellow>A non-critical error has been caught:</yellow> '
                f'<light_cyan>"{record.label} {record.message}" in {record.location}</light_cyan>'
            )
        return True

    # --- Uncaught exceptions ---

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        if not isinstance(exc_value, Exception):
            previous = self._previous_excepthook or sys.__excepthook__
            self.uninstall()
            previous(exc_type, exc_value, exc_traceback)
            return
        self.handle_exception(exc_value)

    def relative_path(self, filename: str) -> str:
        """Path of ``filename`` relative to the project dir, prefixed with ``~``."""
        path = Path(filename)
        if not path.exists():
            return ("~" + filename).replace("\\", "/")
        resolved = path.resolve()
        root = self.project_dir.resolve()
        if resolved.is_relative_to(root):
            return "~/" + resolved.relative_to(root).as_posix()
        return "~" + resolved.as_posix()

    @staticmethod
    def _origin(exc: BaseException) -> tuple[str, int]:
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        if not frames:
            return "<unknown>", 0
        last = frames[-1]
        return last.filename, last.lineno or 0

    @staticmethod
    def qualified_name(exc: BaseException) -> str:
        cls = type(exc)
        if cls.__module__ == "builtins":
            return cls.__qualname__
        return f"{cls.__module__}.{cls.__qualname__}"

    def classify_exception(self, exc: BaseException) -> None:
        """Record the ledger outcome for an escaped exception without terminating."""
        if isinstance(exc, DriverCheckError):
            self.ledger.record_skip(f"A driver could not be initialized due to missing requirement: {exc}")
        elif isinstance(exc, DriverConnectError):
            self.ledger.record_skip(f"A driver could not be initialized due to network/authentication issue: {exc}")
        else:
            filename, lineno = self._origin(exc)
            logger.error(f"Uncaught {type(exc).__name__}: {exc}", exc_info=exc)
            self.ledger.record_fail(
                f'<red>Uncaught exception</red> <light_red>"{self.qualified_name(exc)}"</light_red> '
                f'<red>in</red> <light_red>"{self.relative_path(filename)}"</light_red> '
                f'<red>line</red> <light_red>{lineno}</light_red> '
                f'<red>with message</red>: <light_red>"{str(exc) or NO_MESSAGE_PLACEHOLDER}"</light_red>'
            )

    def handle_exception(self, exc: BaseException) -> int:
        """Record the outcome of an escaped exception, then terminate the session."""
        self.classify_exception(exc)
        return self._terminate()


__all__ = [
    "FULL_MASK",
    "NO_MESSAGE_PLACEHOLDER",
    "REDUCED_MASK",
    "SEVERITY_LABELS",
    "FatalFault",
    "FaultClassifier",
    "FaultRecord",
    "FaultSeverity",
    "NoticeFault",
    "StrictFault",
    "severity_for_category",
]
