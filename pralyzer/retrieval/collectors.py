"""Data collection helpers for pull requests, their comments, and JSON artifacts."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Iterator, List, Optional

from .config import HEARTBEAT_INTERVAL_SEC, PER_PAGE
from .http_client import GitHubClient, Page
from .pagination import fetch_all_pages


def ensure_dir(path: str) -> None:
    """Create output directories as-needed without raising for existing folders."""
    os.makedirs(path, exist_ok=True)


def save_json(path: str, data: Any) -> None:
    """Write JSON to disk using UTF-8 and deterministic formatting."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json_file(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def append_jsonl(path: str, record: Dict[str, Any]) -> None:
    """Append one record as a single JSON line; earlier lines are never touched."""
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(record, ensure_ascii=False))
        f.write("\n")


def count_jsonl_records(path: str) -> int:
    """Count non-blank lines in a JSONL file; 0 when the file is missing."""
    if not os.path.exists(path):
        return 0
    with open(path, "r", encoding="utf-8") as f:
        return sum(1 for line in f if line.strip())


def iter_json_files(root: str) -> Iterator[str]:
    """Yield every `*.json` under ``root`` (sorted), skipping dotfiles such as ledgers."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith(".") or not filename.lower().endswith(".json"):
                continue
            yield os.path.join(dirpath, filename)


def load_word_list(path: str) -> List[str]:
    """Read the keyword list: a JSON array of strings."""
    data = load_json_file(path)
    if not isinstance(data, list) or not all(isinstance(w, str) for w in data):
        raise ValueError(f"{path} must contain a JSON array of strings")
    return [w.strip() for w in data if w.strip()]


def build_comment_search_query(owner: str, repo: str, keyword: str) -> str:
    """Search query for merged PRs whose comments mention ``keyword``."""
    return f"repo:{owner}/{repo} in:comments type:pr is:merged {keyword}"


def _drain_pages(fetch_page: Callable[[int], Page]) -> List[Dict[str, Any]]:
    results: List[Dict[str, Any]] = []
    page: Optional[int] = 1
    while page is not None:
        items, next_page = fetch_page(page)
        results.extend(items)
        page = next_page if next_page is not None and next_page > page else None
    return results


def search_pull_requests_with_comment_keyword(
    client: GitHubClient,
    keyword: str,
    *,
    wait_sec: float,
    heartbeat_sec: float = HEARTBEAT_INTERVAL_SEC,
    per_page: int = PER_PAGE,
    on_rate_limit: Optional[Callable[[], None]] = None,
) -> List[int]:
    """Return PR numbers (search order, de-duplicated) matching ``keyword``.

    Only numbers are collected; full PR objects would cost extra API calls.
    """
    query = build_comment_search_query(client.owner, client.name, keyword)
    items = fetch_all_pages(
        lambda page: client.search_issues_page(query, page, per_page),
        wait_sec=wait_sec,
        heartbeat_sec=heartbeat_sec,
        on_rate_limit=on_rate_limit,
        label=f"search '{keyword}'",
    )
    numbers: List[int] = []
    seen = set()
    for item in items:
        if not item.get("pull_request"):
            continue
        number = item.get("number")
        if not isinstance(number, int) or number in seen:
            continue
        seen.add(number)
        numbers.append(number)
    return numbers


def list_all_pull_requests(
    client: GitHubClient,
    *,
    wait_sec: float,
    heartbeat_sec: float = HEARTBEAT_INTERVAL_SEC,
    per_page: int = PER_PAGE,
) -> List[Dict[str, Any]]:
    """Every pull request in the repository (state=all), in provider order."""
    print(f"  fetching pull requests for {client.full_name} (per page: {per_page})...")
    prs = fetch_all_pages(
        lambda page: client.list_pull_requests_page(page, per_page),
        wait_sec=wait_sec,
        heartbeat_sec=heartbeat_sec,
        label="pull requests",
    )
    for pr in prs:
        pr["repo_name"] = client.full_name
    return prs


def get_comments(client: GitHubClient, number: int, *, per_page: int = PER_PAGE) -> Dict[str, List[Dict[str, Any]]]:
    """Issue-thread and review comments for one PR.

    Failures, rate limits included, propagate to the caller.
    """
    issue_comments = _drain_pages(lambda page: client.list_issue_comments_page(number, page, per_page))
    review_comments = _drain_pages(lambda page: client.list_review_comments_page(number, page, per_page))
    return {"issue_comments": issue_comments, "review_comments": review_comments}


__all__ = [
    "ensure_dir",
    "save_json",
    "load_json_file",
    "append_jsonl",
    "count_jsonl_records",
    "iter_json_files",
    "load_word_list",
    "build_comment_search_query",
    "search_pull_requests_with_comment_keyword",
    "list_all_pull_requests",
    "get_comments",
]
