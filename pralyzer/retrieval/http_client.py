"""GitHub REST client with transport retries and typed rate-limit failures."""

from __future__ import annotations

import os
import re
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import requests

from .config import (
    BACKOFF_BASE_SEC,
    BASE_URL,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from .errors import ApiError, RateLimitError

Page = Tuple[List[Dict[str, Any]], Optional[int]]

_REPO_PATTERN = re.compile(
    r"^(?:(?:https?://)?(?:www\.)?github\.com/)?"
    r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<name>[A-Za-z0-9_.-]+?)(?:\.git)?/?$"
)


def parse_repository(repo: str) -> Tuple[str, str]:
    """Split ``owner/name`` or a github.com URL into its two parts."""
    match = _REPO_PATTERN.match((repo or "").strip())
    if not match:
        raise ValueError(f"invalid repository identifier: {repo!r} (expected owner/name or a GitHub URL)")
    return match.group("owner"), match.group("name")


def sleep_with_jitter(base: float) -> None:
    """Pause execution with +/- 25% jitter to avoid synchronized retries."""
    jitter = base * 0.25 * (0.5 - (os.urandom(1)[0] / 255.0))
    time.sleep(max(0.0, base + jitter))


def error_message(resp: requests.Response) -> str:
    """Pull the human-readable message out of a GitHub error body."""
    try:
        body = resp.json()
    except ValueError:
        body = {"text": (resp.text or "")[:300]}
    if not isinstance(body, dict):
        body = {"text": str(body)[:300]}
    return str(body.get("message") or body.get("error") or body.get("text") or "")


def next_page_from_link(link_header: Optional[str]) -> Optional[int]:
    """Return the page number advertised by ``Link: <...>; rel="next"``."""
    if not link_header:
        return None
    for link in requests.utils.parse_header_links(link_header):
        if link.get("rel") != "next":
            continue
        query = parse_qs(urlparse(link.get("url", "")).query)
        pages = query.get("page")
        if pages and pages[0].isdigit():
            return int(pages[0])
    return None


def _int_header(headers: Dict[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    return int(value) if value is not None and str(value).isdigit() else None


def raise_for_response(resp: requests.Response, url: str) -> None:
    """Translate a non-2xx response into ApiError or RateLimitError."""
    if 200 <= resp.status_code < 300:
        return
    headers = resp.headers or {}
    message = error_message(resp)
    remaining = headers.get("X-RateLimit-Remaining")
    retry_after = _int_header(headers, "Retry-After")
    throttled = (
        resp.status_code == 429
        or (resp.status_code == 403 and (remaining == "0" or retry_after is not None))
        or "rate limit" in message.lower()
    )
    if throttled:
        raise RateLimitError(
            resp.status_code,
            message or "rate limit exceeded",
            url,
            reset_at=_int_header(headers, "X-RateLimit-Reset"),
            retry_after=retry_after,
        )
    raise ApiError(resp.status_code, message, url)


class GitHubClient:
    """Client bound to one repository; build once per run and pass it around."""

    def __init__(
        self,
        owner: str,
        name: str,
        token: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.owner = owner
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": USER_AGENT,
            }
        )
        if token:
            self.session.headers["Authorization"] = f"token {token}"

    @classmethod
    def from_repository(cls, repo: str, token: Optional[str] = None, **kwargs: Any) -> "GitHubClient":
        owner, name = parse_repository(repo)
        return cls(owner, name, token, **kwargs)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Perform one REST call, retrying transport errors and 5xx responses.

        Rate limits and 4xx errors are raised immediately; waiting out a
        rate limit is the caller's decision.
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.session.request(method, url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                last_exc = exc
                if attempt == self.max_retries:
                    break
                delay = BACKOFF_BASE_SEC * (2 ** (attempt - 1))
                print(f"[retry {attempt}/{self.max_retries}] {exc} -> sleep {delay:.1f}s")
                sleep_with_jitter(delay)
                continue

            if resp.status_code >= 500 and attempt < self.max_retries:
                delay = BACKOFF_BASE_SEC * (2 ** (attempt - 1))
                print(f"[retry {attempt}/{self.max_retries}] HTTP {resp.status_code} -> sleep {delay:.1f}s")
                sleep_with_jitter(delay)
                continue

            raise_for_response(resp, url)
            return resp

        if last_exc:
            raise last_exc
        raise RuntimeError(f"Request failed after retries: {url}")

    def _get_page(self, path: str, params: Dict[str, Any]) -> Tuple[Any, Optional[int]]:
        resp = self.request("GET", path, params=params)
        return resp.json(), next_page_from_link((resp.headers or {}).get("Link"))

    def search_issues_page(self, query: str, page: int = 1, per_page: int = 100) -> Page:
        """One page of ``/search/issues`` results and the next page number."""
        payload, next_page = self._get_page(
            "/search/issues", {"q": query, "page": page, "per_page": per_page}
        )
        items = (payload or {}).get("items") or []
        return list(items), next_page

    def list_pull_requests_page(self, page: int = 1, per_page: int = 100, state: str = "all") -> Page:
        payload, next_page = self._get_page(
            f"/repos/{self.owner}/{self.name}/pulls",
            {"state": state, "page": page, "per_page": per_page},
        )
        return list(payload or []), next_page

    def get_pull_request(self, number: int) -> Dict[str, Any]:
        resp = self.request("GET", f"/repos/{self.owner}/{self.name}/pulls/{number}")
        return resp.json() or {}

    def list_issue_comments_page(self, number: int, page: int = 1, per_page: int = 100) -> Page:
        payload, next_page = self._get_page(
            f"/repos/{self.owner}/{self.name}/issues/{number}/comments",
            {"page": page, "per_page": per_page},
        )
        return list(payload or []), next_page

    def list_review_comments_page(self, number: int, page: int = 1, per_page: int = 100) -> Page:
        payload, next_page = self._get_page(
            f"/repos/{self.owner}/{self.name}/pulls/{number}/comments",
            {"page": page, "per_page": per_page},
        )
        return list(payload or []), next_page


__all__ = [
    "GitHubClient",
    "Page",
    "parse_repository",
    "sleep_with_jitter",
    "error_message",
    "next_page_from_link",
    "raise_for_response",
]
