"""Rate-limit detection and the fixed-duration backoff waiter."""

from __future__ import annotations

import enum
import re
import time
from typing import Iterable, Optional

from .config import GITHUB_RATE_LIMIT_STATUSES, HEARTBEAT_INTERVAL_SEC
from .errors import RateLimitError

_RATE_LIMIT_PATTERN = re.compile(r"rate\s*limit", re.IGNORECASE)
_PATH_TOKEN = re.compile(r"\S*/\S*")


class RateLimitSignal(enum.Enum):
    """Which shape of throttling signal a failure carried."""

    STATUS_CODE = "status_code"
    MESSAGE_PATTERN = "message_pattern"
    STRUCTURED = "structured"


def _message_text(exc: BaseException) -> str:
    """Failure text without URLs or paths, which carry PR numbers like 403."""
    message = getattr(exc, "message", None)
    text = message if isinstance(message, str) else str(exc)
    return _PATH_TOKEN.sub(" ", text)


def _mentions_status(text: str, statuses: Iterable[int]) -> bool:
    return any(re.search(rf"(?<!\d){code}(?!\d)", text) for code in statuses)


def detect_rate_limit(
    exc: Optional[BaseException],
    statuses: Iterable[int] = GITHUB_RATE_LIMIT_STATUSES,
) -> Optional[RateLimitSignal]:
    """Return the first throttling signal found on ``exc``, or None.

    A typed ``status_code`` is trusted as is; only untyped failures have
    their text scanned for a status.
    """
    if exc is None:
        return None
    statuses = tuple(statuses)
    text = _message_text(exc)

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        if status in statuses:
            return RateLimitSignal.STATUS_CODE
    elif _mentions_status(text, statuses):
        return RateLimitSignal.STATUS_CODE
    if _RATE_LIMIT_PATTERN.search(text):
        return RateLimitSignal.MESSAGE_PATTERN
    if isinstance(exc, RateLimitError):
        return RateLimitSignal.STRUCTURED
    return None


def is_rate_limited(
    exc: Optional[BaseException],
    statuses: Iterable[int] = GITHUB_RATE_LIMIT_STATUSES,
) -> bool:
    """True iff ``exc`` represents provider throttling."""
    return detect_rate_limit(exc, statuses) is not None


def format_duration(seconds: float) -> str:
    """Render seconds as ``1h05m00s`` style text for heartbeat lines."""
    total = int(round(max(0.0, seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def reset_hint(exc: Optional[BaseException]) -> str:
    """`` (provider reset in 4m10s)`` when the failure carries reset metadata."""
    seconds = exc.seconds_until_reset() if isinstance(exc, RateLimitError) else None
    if seconds is None:
        return ""
    return f" (provider reset in {format_duration(seconds)})"


def wait_for_rate_limit(wait_sec: float, heartbeat_sec: float = HEARTBEAT_INTERVAL_SEC) -> None:
    """Block for ``wait_sec`` seconds, printing the remaining time every heartbeat.

    This is a fixed timer; it never asks the provider whether the limit has
    already cleared.
    """
    wait_sec = max(0.0, float(wait_sec))
    step = float(heartbeat_sec) if heartbeat_sec and heartbeat_sec > 0 else wait_sec
    elapsed = 0.0
    while elapsed < wait_sec:
        chunk = min(step, wait_sec - elapsed)
        time.sleep(chunk)
        elapsed += chunk
        remaining = wait_sec - elapsed
        if remaining > 0:
            print(f"[rate-limit] still waiting... {format_duration(remaining)} remaining")
    print("[rate-limit] wait completed, resuming...")


__all__ = [
    "RateLimitSignal",
    "detect_rate_limit",
    "is_rate_limited",
    "format_duration",
    "reset_hint",
    "wait_for_rate_limit",
]
