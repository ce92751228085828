#!/usr/bin/env python3

"""
core/session.py - Session Controller

A ``TestSession`` owns one harness run: it records the start time, installs the
fault classifier, prints the header, exposes the assertion helpers and, on
``terminate()``, prints the footer, tears the classifier down and exits with
the code derived by the ledger.

Use it as a context manager so the classifier is removed on every exit path:

    with TestSession("Disk driver") as session:
        ContractVerifier(session).run_crud_tests(pool)

An exception escaping the block is classified (skip for driver availability
problems, failure otherwise) and the session terminates.
"""

from __future__ import annotations

import logging
import os
import platform
import random
import secrets
import subprocess
import sys
import time
from dataclasses import dataclass
from enum import Enum
from importlib import metadata
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Optional, Sequence, Union

import psutil

from poolprobe import API_VERSION, __version__
from poolprobe.caching.events import EventManager, SubscriptionToken
from poolprobe.config.config_schema import HarnessConfig, PoolConfig
from poolprobe.core.faults import FULL_MASK, REDUCED_MASK, FaultClassifier, FaultSeverity
from poolprobe.core.ledger import AssertionLedger, LedgerCounts
from poolprobe.markup import create_printer, upper_outside_tags

logger = logging.getLogger(__name__)

# Distributions listed in the session header
REPORTED_DISTRIBUTIONS: tuple[str, ...] = ("diskcache", "psutil", "python-dotenv", "SQLAlchemy")

SIZE_UNITS = "BKMGTP"


def format_readable_size(size: int, decimals: int = 1) -> str:
    """Human readable byte count: ``1536`` -> ``"1.5Ko"``.

    The unit is picked from the number of decimal digits, three per step.
    """
    factor = (len(str(int(size))) - 1) // 3
    unit = SIZE_UNITS[factor] if factor < len(SIZE_UNITS) else ""
    return f"{size / (1024 ** factor):.{decimals}f}{unit}o"


def installed_distributions(names: Sequence[str] = REPORTED_DISTRIBUTIONS) -> list[str]:
    """``name vX`` for each installed distribution, case-insensitively sorted."""
    found = []
    for name in names:
        try:
            found.append(f"{name} v{metadata.version(name)}")
        except metadata.PackageNotFoundError:
            logger.debug(f"Distribution {name} not installed")
    return sorted(found, key=str.casefold)


def os_peak_rss() -> int:
    """Peak resident set size the OS recorded for this process, in bytes.

    ``getrusage`` reports kilobytes on Linux and bytes on macOS. Windows has no
    ``resource`` module; psutil's ``peak_wset`` covers it there, so this is 0.
    """
    if os.name == "nt":
        return 0
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


class SessionState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"
    EXITED = "exited"


@dataclass(frozen=True)
class SessionDiagnostics:
    """Read-only view of session internals."""

    name: str
    start_time: float
    state: SessionState
    counts: LedgerCounts
    classifier_installed: bool
    mask: FaultSeverity
    peak_memory: int
    exit_code: Optional[int]


class TestSession:
    """One harness run: ledger, fault classifier, output and exit."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        name: str,
        config: Optional[HarnessConfig] = None,
        printer: Optional[Callable[[str], Any]] = None,
        exit_func: Callable[[int], Any] = sys.exit,
    ) -> None:
        self.name = name
        self.config = config if config is not None else HarnessConfig()
        self.start_time = time.time()
        self._started = time.perf_counter()
        self._printer = printer if printer is not None else create_printer(ansi=self.config.color)
        self._exit_func = exit_func
        self._process = psutil.Process()
        self._peak_memory = 0
        self.state = SessionState.RUNNING
        self.exit_code: Optional[int] = None

        self.ledger = AssertionLedger(emit=self.print_text)
        self.classifier = FaultClassifier(
            self.ledger,
            debug_printer=self.print_debug_text,
            project_dir=self.get_project_dir(),
            terminate=self.terminate,
            mask=REDUCED_MASK if self.config.mute_notices else FULL_MASK,
        )
        self.classifier.install()
        self.sample_memory()
        logger.info(f"Test session '{name}' started")
        self.print_headers()

    # === CONTEXT MANAGER ===

    def __enter__(self) -> "TestSession":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        if exc is not None and not isinstance(exc, Exception):
            # KeyboardInterrupt, SystemExit (including our own exit) pass through.
            self.classifier.uninstall()
            return False
        if self.state is not SessionState.RUNNING:
            return False
        if exc is None:
            self.terminate()
            return False
        self.classifier.handle_exception(exc)
        return True

    # === OUTPUT ===

    def print_headers(self) -> None:
        self.print_text(f"[<blue>Begin Test:</blue> <magenta>{self.name}</magenta>]")
        self.print_text(
            f"[<blue>POOLPROBE:</blue> CORE <yellow>v{__version__}</yellow> | API <yellow>v{API_VERSION}</yellow>]"
        )
        self.print_text(
            f"[<blue>Python</blue> <yellow>v{platform.python_version()}</yellow> with: "
            f"<green>{', '.join(installed_distributions())}</green>]"
        )
        self.print_text("---")

    def print_text(self, text: Union[str, Sequence[str]], upper: bool = False, prefix: str = "") -> "TestSession":
        if not isinstance(text, str):
            text = "\n".join(text)
        if prefix:
            text = f"[{prefix}] {text}"
        self._printer(upper_outside_tags(text) if upper else text)
        return self

    def print_note_text(self, text: str) -> "TestSession":
        return self.print_text(text, prefix="<blue>NOTE</blue>")

    def print_debug_text(self, text: str) -> "TestSession":
        return self.print_text(text, prefix="<magenta>DEBUG</magenta>")

    def print_info_text(self, text: str) -> "TestSession":
        return self.print_text(text, prefix="<blue>INFO</blue>")

    def print_new_line(self, count: int = 1) -> "TestSession":
        self._printer("\n" * (count - 1))
        return self

    # === ASSERTIONS ===

    def assert_pass(self, message: str) -> "TestSession":
        self.ledger.record_pass(message)
        self.sample_memory()
        return self

    def assert_fail(self, message: str, fails_test: bool = True) -> "TestSession":
        self.ledger.record_fail(message, counts_as_failure=fails_test)
        self.sample_memory()
        return self

    def assert_skip(self, message: str) -> "TestSession":
        self.ledger.record_skip(message)
        self.sample_memory()
        return self

    # === FAULT MASK ===

    def mute_notices(self) -> None:
        self.classifier.set_mask(REDUCED_MASK)

    def unmute_notices(self) -> None:
        self.classifier.set_mask(FULL_MASK)

    # === TERMINATION ===

    @property
    def duration(self) -> float:
        return time.perf_counter() - self._started

    def sample_memory(self) -> int:
        """Peak memory of the process: the OS high-water mark, or sampled RSS where it is higher."""
        info = self._process.memory_info()
        current = max(info.rss, getattr(info, "peak_wset", 0), os_peak_rss())
        if current > self._peak_memory:
            self._peak_memory = current
        return self._peak_memory

    def terminate(self) -> int:
        """Print the footer, remove the fault handlers and exit with the derived code.

        Calling it again once terminating is a no-op returning the same code.
        """
        if self.state is not SessionState.RUNNING:
            return self.exit_code if self.exit_code is not None else self.ledger.derive_exit_code()

        self.state = SessionState.TERMINATING
        peak = self.sample_memory()
        self.print_text(self.ledger.summary())
        self.print_text(f"<blue>Test duration: </blue><yellow>{round(self.duration, 3)}s</yellow>")
        self.print_text(f"<blue>Test memory: </blue><yellow>{format_readable_size(peak)}</yellow>")
        self.classifier.uninstall()

        code = self.ledger.derive_exit_code()
        self.exit_code = code
        self.state = SessionState.EXITED
        logger.info(f"Test session '{self.name}' finished with exit code {code}")
        self._exit_func(code)
        return code

    # === HELPERS ===

    def get_project_dir(self) -> Path:
        return Path(self.config.project_root)

    def diagnostics(self) -> SessionDiagnostics:
        return SessionDiagnostics(
            name=self.name,
            start_time=self.start_time,
            state=self.state,
            counts=self.ledger.counts,
            classifier_installed=self.classifier.installed,
            mask=self.classifier.mask,
            peak_memory=self._peak_memory,
            exit_code=self.exit_code,
        )

    @staticmethod
    def get_random_key(prefix: str = "test_", min_block_length: int = 3) -> str:
        """Random key made of hex blocks joined by underscores; short trailing blocks are dropped."""
        raw = secrets.token_hex(random.randint(6, 16))
        size = random.randint(min_block_length, min_block_length + 5)
        blocks = [raw[i:i + size] for i in range(0, len(raw), size)]
        return prefix + "_".join(block for block in blocks if len(block) >= min_block_length)

    @staticmethod
    def pre_configure(config: PoolConfig) -> PoolConfig:
        """Harness defaults for a pool config: detailed dates on, static item caching off."""
        return config.set_item_detailed_date(True).set_use_static_item_caching(False)

    def debug_events(self, event_manager: EventManager) -> SubscriptionToken:
        """Print a debug line for every event the manager dispatches."""

        def _print_event(event_name: str, *_args: Any) -> None:
            self.print_debug_text(f"Triggered event '{event_name}'")

        return event_manager.on_every_event(_print_event)

    def run_sub_process(self, name: str, ext: str = ".py") -> subprocess.Popen:
        path = Path.cwd() / "subprocess" / f"{name}.subprocess{ext}"
        self.print_debug_text(f'Running PYTHON subprocess on "{path}"')
        return self.run_async_process([sys.executable, str(path)])

    @staticmethod
    def run_async_process(command: Union[str, Sequence[str]]) -> subprocess.Popen:
        """Start ``command`` in the background and return without waiting for it."""
        logger.debug(f"Launching background process: {command}")
        if os.name == "nt":
            return subprocess.Popen(
                command,
                shell=isinstance(command, str),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=subprocess.CREATE_NO_WINDOW | subprocess.CREATE_NEW_PROCESS_GROUP,
            )
        return subprocess.Popen(
            command,
            shell=isinstance(command, str),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )


__all__ = [
    "SessionDiagnostics",
    "SessionState",
    "TestSession",
    "format_readable_size",
    "installed_distributions",
]
