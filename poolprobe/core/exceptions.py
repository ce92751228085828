#!/usr/bin/env python3

"""
Exception hierarchy for the poolprobe conformance harness.

Drivers translate their library errors into these classes at their boundary so
the fault classifier can tell an environment limitation (missing requirement,
unreachable backend) apart from a genuine contract or harness bug.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


# === HARNESS EXCEPTION HIERARCHY ===


class PoolProbeError(Exception):
    """Base exception class for all poolprobe errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = kwargs.get("context") or {}
        self.recovery_hint = kwargs.get("recovery_hint")


class DriverCheckError(PoolProbeError):
    """A driver cannot be initialized because a runtime requirement is missing."""

    def __init__(self, message: str = "Driver requirement check failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.driver_name = kwargs.get("driver_name")
        self.missing_requirement = kwargs.get("missing_requirement")


class DriverNotFoundError(DriverCheckError):
    """No driver is registered under the requested name."""

    def __init__(self, message: str = "Driver not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.available_drivers: list[str] = kwargs.get("available_drivers", [])


class DriverConnectError(PoolProbeError):
    """A driver could not reach or authenticate against its backend."""

    def __init__(self, message: str = "Driver connection failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.driver_name = kwargs.get("driver_name")
        self.endpoint = kwargs.get("endpoint")


class InvalidArgumentError(PoolProbeError, ValueError):
    """An argument is invalid, or unsupported by the driver it was given to."""

    def __init__(self, message: str = "Invalid argument", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.argument = kwargs.get("argument")


class LogicError(PoolProbeError):
    """An operation was called in a state where it cannot make sense."""

    def __init__(self, message: str = "Logic error", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UnsupportedMethodError(PoolProbeError):
    """The driver does not implement an optional capability."""

    def __init__(self, message: str = "Method unsupported by driver", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.method = kwargs.get("method")


class PoolContractError(PoolProbeError):
    """An object handed to the verifier does not expose the pool capability interface."""

    def __init__(self, message: str = "Object does not satisfy the pool capability interface", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.missing_members: list[str] = kwargs.get("missing_members", [])


class DriverIOError(PoolProbeError):
    """A driver failed while reading from or writing to its backend."""

    def __init__(self, message: str = "Driver I/O error", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.operation = kwargs.get("operation")


__all__ = [
    "DriverCheckError",
    "DriverConnectError",
    "DriverIOError",
    "DriverNotFoundError",
    "InvalidArgumentError",
    "LogicError",
    "PoolContractError",
    "PoolProbeError",
    "UnsupportedMethodError",
]
