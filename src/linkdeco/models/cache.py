from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """One stored value with its expiry metadata."""

    payload: str
    created_at: float  # Epoch seconds
    ttl: float | None = None  # Seconds; None never expires, 0 is expired at once

    def is_expired(self, now: float) -> bool:
        if self.ttl is None:
            return False
        return self.ttl == 0 or now > self.created_at + self.ttl


class CachedFailure(BaseModel):
    message: str
    status: int | None = None


class FetchCacheEnvelope(BaseModel):
    """Payload written by CachedFetcher inside a CacheEntry."""

    type: Literal["success", "error"]
    data: str = ""
    error: CachedFailure | None = None
    timestamp: float
