"""Typed failures raised by the GitHub client."""

from __future__ import annotations

import time
from typing import Optional


class ApiError(RuntimeError):
    """A non-2xx response from the hosting API."""

    def __init__(self, status_code: int, message: str, url: str = "") -> None:
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"HTTP {status_code} for {url}: {message}" if url else f"HTTP {status_code}: {message}")


class RateLimitError(ApiError):
    """Structured throttling failure carrying the provider's reset metadata."""

    def __init__(
        self,
        status_code: int,
        message: str,
        url: str = "",
        *,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(status_code, message, url)
        self.reset_at = reset_at
        self.retry_after = retry_after

    def seconds_until_reset(self, now: Optional[float] = None) -> Optional[int]:
        """Seconds until the advertised reset, or None when GitHub sent none."""
        if self.retry_after is not None:
            return self.retry_after
        if self.reset_at is None:
            return None
        now = time.time() if now is None else now
        return max(0, int(self.reset_at - now))


__all__ = ["ApiError", "RateLimitError"]
