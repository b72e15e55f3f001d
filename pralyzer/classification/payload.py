"""Reshape raw GitHub comment dumps into the compact conversation format."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

STATS_COMMENT_PREFIX = "## Stats from current PR"


def _user_name(comment: Dict[str, Any]) -> str:
    return ((comment.get("user") or {}).get("login")) or ""


def _comment_payload(comment: Dict[str, Any], comment_type: str) -> Dict[str, Any]:
    return {
        "id": comment.get("id") or 0,
        "user_name": _user_name(comment),
        "body": comment.get("body") or "",
        "type": comment_type,
        "created_at": comment.get("created_at") or "",
        "updated_at": comment.get("updated_at") or "",
    }


def convert_pr_comments_to_payload(
    issue_comments: List[Dict[str, Any]],
    review_comments: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Merge both comment kinds into one list ordered by creation time."""
    payloads = [_comment_payload(c, "issue_comment") for c in issue_comments or [] if c]
    payloads.extend(_comment_payload(c, "review_comment") for c in review_comments or [] if c)
    # ISO-8601 timestamps from GitHub sort lexicographically; sort is stable.
    payloads.sort(key=lambda p: p["created_at"])
    return payloads


def convert_to_review_comment_json(pr_comments: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Turn ``{issue_comments, review_comments}`` raw dumps into the compact shape.

    Review comments keep their ``path`` and ``diff_hunk`` so the classifier
    sees which code the remark is about.
    """
    raw_reviews = [c for c in pr_comments.get("review_comments") or [] if c]
    review_by_id = {c.get("id"): c for c in raw_reviews if c.get("id") is not None}

    issue_out: List[Dict[str, Any]] = []
    review_out: List[Dict[str, Any]] = []
    for payload in convert_pr_comments_to_payload(pr_comments.get("issue_comments") or [], raw_reviews):
        if payload["type"] == "issue_comment":
            issue_out.append(payload)
            continue
        original = review_by_id.get(payload["id"]) or {}
        review_out.append({
            "id": payload["id"],
            "user_name": payload["user_name"],
            "path": original.get("path") or "",
            "diff_hunk": original.get("diff_hunk") or "",
            "body": payload["body"],
            "created_at": payload["created_at"],
            "updated_at": payload["updated_at"],
        })
    return {"issue_comments": issue_out, "review_comments": review_out}


def strip_stats_comments(doc: Dict[str, Any]) -> Tuple[Dict[str, Any], int]:
    """Drop bot comments that start with the PR stats banner; returns (doc, removed)."""
    comments = doc.get("issue_comments") or []
    kept = [c for c in comments if not (c.get("body") or "").strip().startswith(STATS_COMMENT_PREFIX)]
    removed = len(comments) - len(kept)
    if removed:
        doc = dict(doc, issue_comments=kept)
    return doc, removed


__all__ = [
    "STATS_COMMENT_PREFIX",
    "convert_pr_comments_to_payload",
    "convert_to_review_comment_json",
    "strip_stats_comments",
]
