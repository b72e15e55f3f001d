"""Walk a paginated endpoint to completion, waiting out rate limits in place."""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Tuple

from .config import GITHUB_RATE_LIMIT_STATUSES, HEARTBEAT_INTERVAL_SEC
from .ratelimit import format_duration, is_rate_limited, reset_hint, wait_for_rate_limit

PageFetcher = Callable[[int], Tuple[List[Any], Optional[int]]]


def fetch_all_pages(
    fetch_page: PageFetcher,
    *,
    wait_sec: float,
    heartbeat_sec: float = HEARTBEAT_INTERVAL_SEC,
    statuses: Iterable[int] = GITHUB_RATE_LIMIT_STATUSES,
    on_rate_limit: Optional[Callable[[], None]] = None,
    label: str = "",
    start_page: int = 1,
) -> List[Any]:
    """Collect every page returned by ``fetch_page(page) -> (items, next_page)``.

    A rate-limited page is retried after ``wait_sec`` with no attempt cap;
    ``on_rate_limit`` runs before each wait so callers can checkpoint. Any
    other failure propagates and nothing gathered so far is returned.
    """
    statuses = tuple(statuses)
    results: List[Any] = []
    page: Optional[int] = start_page
    prefix = f"{label}: " if label else ""

    while page is not None:
        try:
            items, next_page = fetch_page(page)
        except Exception as exc:
            if not is_rate_limited(exc, statuses):
                raise
            print(
                f"[rate-limit] {prefix}{exc}{reset_hint(exc)}; waiting {format_duration(wait_sec)} "
                f"before retrying page {page}"
            )
            if on_rate_limit is not None:
                on_rate_limit()
            wait_for_rate_limit(wait_sec, heartbeat_sec)
            print(f"[rate-limit] {prefix}retrying page {page}...")
            continue

        results.extend(items)
        print(f"  {prefix}fetched {len(items)} from page {page} (total: {len(results)})")
        if next_page is not None and next_page <= page:
            # next page must advance
            break
        page = next_page

    return results


__all__ = ["PageFetcher", "fetch_all_pages"]
