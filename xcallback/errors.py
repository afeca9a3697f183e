"""Failure model for x-callback-url.

Two families live here:

- ``CallbackURLKitError`` and subclasses: local API misuse detected before any
  cross-process call; raised synchronously from ``perform_action``.
- ``FailureInfo``: anything with an integer ``code`` and a ``message``; this is
  what failure callbacks receive and what travels on the wire as
  ``error-Code`` / ``errorMessage``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol, runtime_checkable

from .protocol import ERROR_CODE_KEY, ERROR_MESSAGE_KEY
from .query import Parameters, encode

ERROR_DOMAIN = "xcallback.error"


class ErrorCode(IntEnum):
    NOT_SUPPORTED_ACTION = 1  # "<action> not supported by <app>"
    MISSING_PARAMETER = 2  # handler-level: required argument absent
    MISSING_ERROR_CODE = 3  # error response without a usable error-Code


@runtime_checkable
class FailureInfo(Protocol):
    """Minimal error contract delivered to failure callbacks."""

    @property
    def code(self) -> int: ...

    @property
    def message(self) -> str: ...


@dataclass(eq=False)
class CallbackError(Exception):
    """Concrete failure carried between applications."""

    code: int
    message: str
    domain: str = ERROR_DOMAIN

    def __str__(self) -> str:
        return f"{self.message} (code={self.code})"

    @classmethod
    def with_code(cls, code: ErrorCode | int, message: str) -> CallbackError:
        return cls(code=int(code), message=message)


def as_failure(error: BaseException | FailureInfo) -> FailureInfo:
    """Adapt a host-native exception to ``FailureInfo``.

    Objects already exposing an integer ``code`` and a string ``message`` are
    returned as-is; anything else becomes code 0 with ``str(error)``.
    """
    code = getattr(error, "code", None)
    message = getattr(error, "message", None)
    if isinstance(code, int) and not isinstance(code, bool) and isinstance(message, str):
        return error  # type: ignore[return-value]
    return CallbackError(code=0, message=str(error) or type(error).__name__)


def error_parameters(failure: FailureInfo) -> Parameters:
    """Wire fields for a failure: ``error-Code`` and ``errorMessage``."""
    return {ERROR_CODE_KEY: str(int(failure.code)), ERROR_MESSAGE_KEY: str(failure.message)}


def error_query(failure: FailureInfo) -> str:
    return encode(error_parameters(failure))


class CallbackURLKitError(Exception):
    """Base class for errors raised synchronously by the framework."""


class TargetNotInstalled(CallbackURLKitError):
    """No application handles the target scheme."""

    def __init__(self, scheme: str, detail: str | None = None) -> None:
        self.scheme = scheme
        self.detail = detail
        msg = f"No application installed for scheme {scheme!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CallbackSchemeNotDefined(CallbackURLKitError):
    """Callbacks were supplied but this process has no callback scheme."""

    def __init__(self) -> None:
        super().__init__("Completion callbacks require a callback URL scheme (set XCU_CALLBACK_SCHEME)")


class RequestURLConstructionFailed(CallbackURLKitError):
    """The request URL could not be built from its components."""

    def __init__(self, reason: str, *, scheme: str | None = None, action: str | None = None) -> None:
        self.reason = reason
        self.scheme = scheme
        self.action = action
        super().__init__(f"Failed to create request URL: {reason}")


__all__ = [
    "ERROR_DOMAIN",
    "CallbackError",
    "CallbackSchemeNotDefined",
    "CallbackURLKitError",
    "ErrorCode",
    "FailureInfo",
    "RequestURLConstructionFailed",
    "TargetNotInstalled",
    "as_failure",
    "error_parameters",
    "error_query",
]
