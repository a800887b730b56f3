# app/domain/errors.py
from __future__ import annotations

from typing import Any


class UpstreamError(Exception):
    """Base for anything the Hospitable API did to us."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamUnavailable(UpstreamError):
    """Non-2xx other than 404/429, transport failure, or open circuit."""


class UpstreamNotFound(UpstreamError):
    pass


class UpstreamRateLimited(UpstreamError):
    def __init__(self, message: str, *, retry_after: float | None = None, **kw: Any) -> None:
        super().__init__(message, **kw)
        self.retry_after = retry_after


class MissingCredential(Exception):
    """No platform token configured. Raised before any upstream call."""


class IdentifierFormatError(ValueError):
    def __init__(self, received: Any) -> None:
        super().__init__(
            'Platform ID must be in the format "customerId/listingId" or "customerId:listingId"'
        )
        self.received = received


class MappingError(ValueError):
    """An upstream listing that cannot become a catalog property even with defaults."""


class Throttled(Exception):
    """Our own limiter refused an upstream call and there was nothing cached to serve instead."""

    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__(f"rate limited for {key}, retry after {retry_after:.1f}s")
        self.key = key
        self.retry_after = retry_after


class NothingToSync(LookupError):
    """Upstream returned no listings (or none of the requested ones)."""
