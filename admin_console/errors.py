from __future__ import annotations

from typing import Any, Optional


class RequestError(ValueError):
    """Raised when a console API call does not produce a usable payload."""

    def __init__(self, message: str, *, status: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


class TransportError(RequestError):
    """Network failure, or a non-2xx response with a JSON body."""


class DecodeError(RequestError):
    """Non-2xx response whose body is not JSON; the message is the raw body."""


class ValidationError(ValueError):
    """Local input error; raised before any request is made."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
