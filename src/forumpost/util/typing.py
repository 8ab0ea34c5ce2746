"""Shared typing helpers for forumpost modules."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class SupportsHTTPResponse(Protocol):
    """Response objects exposing a status code and case-insensitive headers."""

    status_code: int
    headers: Mapping[str, str]


@runtime_checkable
class SupportsRESTError(Protocol):
    """Errors that carry the HTTP response which caused them."""

    response: SupportsHTTPResponse | None


__all__ = ["SupportsHTTPResponse", "SupportsRESTError"]
