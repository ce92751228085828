"""
Core Package - harness components.

Components:
- exceptions: PoolProbeError hierarchy raised by pools and drivers
- ledger: AssertionLedger, pass/fail/skip counters and exit codes
- faults: FaultClassifier for warnings and uncaught exceptions
- session: TestSession, lifecycle and output
- contract_verifier: ContractVerifier, CRUD and bulk retrieval sequences

Submodules are imported on first attribute access so the caching package can
depend on ``core.exceptions`` without pulling in the session.
"""

from typing import Any

_SUBMODULES = frozenset(["exceptions", "ledger", "faults", "session", "contract_verifier"])


def __getattr__(name: str) -> Any:
    """Lazy import submodules on attribute access."""
    if name in _SUBMODULES:
        import importlib

        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    """List available submodules."""
    return list(_SUBMODULES)
