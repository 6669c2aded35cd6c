# SPARQL Endpoint Access Layer
# File: errors.py
# Version: v2

"""Closed error taxonomy for SPARQL endpoint access.

Every failed attempt against an endpoint is turned into exactly one
:class:`ClassifiedError`. Higher layers only ever see these, never raw
``httpx`` exceptions.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx


class ErrorCode(str, Enum):
    QUERY_ERROR = "QUERY_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_FAILED = "AUTH_FAILED"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    CORS_BLOCKED = "CORS_BLOCKED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


class ClassifiedError(Exception):
    """A classified failure. Attributes are read-only once constructed."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        retryable: bool = False,
        details: Optional[str] = None,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self._code = ErrorCode(code)
        self._message = message
        self._retryable = bool(retryable)
        self._details = details
        self._status = status
        self._cause = cause
        self._timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def code(self) -> ErrorCode:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def details(self) -> Optional[str]:
        return self._details

    @property
    def status(self) -> Optional[int]:
        return self._status

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    @property
    def timestamp(self) -> str:
        return self._timestamp

    def to_dict(self) -> Dict[str, Any]:
        """Small, LLM-friendly error shape used by the tool surface."""
        err: Dict[str, Any] = {
            "code": self._code.value,
            "message": self._message,
            "retryable": self._retryable,
        }
        if self._details:
            err["details"] = self._details
        if self._status is not None:
            err["status"] = self._status
        return err

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(code={self._code.value}, message={self._message!r}, "
            f"retryable={self._retryable})"
        )


_STATUS_TABLE = {
    400: (ErrorCode.QUERY_ERROR, "Invalid SPARQL query", False),
    401: (ErrorCode.AUTH_REQUIRED, "Authentication required", False),
    403: (ErrorCode.AUTH_FAILED, "Access denied. Check credentials.", False),
    404: (ErrorCode.NOT_FOUND, "Endpoint not found", False),
    408: (ErrorCode.NETWORK_ERROR, "Request timed out", True),
    429: (ErrorCode.NETWORK_ERROR, "Too many requests", True),
}

_RETRYABLE_SERVER_STATUSES = {500, 502, 503, 504}


def classify_status(
    status: int,
    reason: str = "",
    details: Optional[str] = None,
) -> ClassifiedError:
    """Classify a non-success HTTP status code."""
    status = int(status)
    if status in _STATUS_TABLE:
        code, message, retryable = _STATUS_TABLE[status]
        return ClassifiedError(code, message, retryable, details=details, status=status)

    if 500 <= status <= 599:
        return ClassifiedError(
            ErrorCode.SERVER_ERROR,
            f"Server error: {reason or status}",
            retryable=status in _RETRYABLE_SERVER_STATUSES,
            details=details,
            status=status,
        )

    return ClassifiedError(
        ErrorCode.QUERY_ERROR,
        f"HTTP {status}: {reason}".rstrip(": "),
        retryable=False,
        details=details,
        status=status,
    )


def _looks_like_cors(exc: BaseException) -> bool:
    message = str(exc).lower()
    return "cors" in message or "cross-origin" in message


def classify_exception(
    exc: BaseException,
    detect_cors: bool = False,
) -> ClassifiedError:
    """Classify an exception raised while talking to an endpoint.

    Cross-origin blocking only exists in browser runtimes; outside of one the
    message heuristic is opt-in via ``detect_cors`` and otherwise such errors
    are plain network errors.
    """
    if isinstance(exc, ClassifiedError):
        return exc

    if detect_cors and _looks_like_cors(exc):
        return ClassifiedError(
            ErrorCode.CORS_BLOCKED,
            "CORS error: Endpoint does not allow browser access",
            retryable=False,
            details="The endpoint needs to enable CORS headers",
            cause=exc,
        )

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ClassifiedError(
            ErrorCode.NETWORK_ERROR,
            "Request timed out",
            retryable=True,
            details=str(exc) or type(exc).__name__,
            cause=exc,
        )

    if isinstance(exc, httpx.DecodingError):
        return ClassifiedError(
            ErrorCode.INVALID_RESPONSE,
            "Unexpected response format",
            retryable=False,
            details=f"Could not decode response body: {exc}",
            cause=exc,
        )

    if isinstance(exc, httpx.TooManyRedirects):
        return ClassifiedError(
            ErrorCode.NETWORK_ERROR,
            "Too many redirects",
            retryable=False,
            details=str(exc) or type(exc).__name__,
            cause=exc,
        )

    # A bad URL, an unsupported scheme or a broken proxy setup fails the
    # same way on every attempt.
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.ProxyError)):
        return ClassifiedError(
            ErrorCode.NETWORK_ERROR,
            "Network error",
            retryable=False,
            details=str(exc) or type(exc).__name__,
            cause=exc,
        )

    # Dropped connections (RemoteProtocolError) and the rest of the transport
    # layer.
    if isinstance(exc, httpx.TransportError):
        return ClassifiedError(
            ErrorCode.NETWORK_ERROR,
            "Network error",
            retryable=True,
            details=str(exc) or type(exc).__name__,
            cause=exc,
        )

    return ClassifiedError(
        ErrorCode.NETWORK_ERROR,
        "Network error",
        retryable=False,
        details=str(exc) or type(exc).__name__,
        cause=exc,
    )


def invalid_response(
    details: str,
    cause: Optional[BaseException] = None,
) -> ClassifiedError:
    return ClassifiedError(
        ErrorCode.INVALID_RESPONSE,
        "Unexpected response format",
        retryable=False,
        details=details,
        cause=cause,
    )


def classify(
    outcome: Union[int, BaseException],
    detect_cors: bool = False,
) -> ClassifiedError:
    """Map an HTTP status code or a raised exception to a ClassifiedError."""
    if isinstance(outcome, bool):
        raise TypeError("classify() expects an HTTP status code or an exception")
    if isinstance(outcome, int):
        return classify_status(outcome)
    if isinstance(outcome, BaseException):
        return classify_exception(outcome, detect_cors=detect_cors)
    raise TypeError("classify() expects an HTTP status code or an exception")
