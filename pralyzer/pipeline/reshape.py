"""Directory-level passes that reshape saved comment dumps."""

from __future__ import annotations

import os
from typing import Tuple

from pralyzer.classification.payload import convert_to_review_comment_json, strip_stats_comments
from pralyzer.retrieval.collectors import ensure_dir, iter_json_files, load_json_file, save_json


def convert_directory(input_dir: str, output_dir: str) -> Tuple[int, int]:
    """Convert raw ``{issue_comments, review_comments}`` dumps under ``input_dir``.

    Output mirrors the input's relative layout under ``output_dir``. Unreadable
    files are reported and skipped. Returns (converted, failed).
    """
    converted = failed = 0
    for path in iter_json_files(input_dir):
        print(f"Processing: {path}")
        try:
            raw = load_json_file(path)
            if not isinstance(raw, dict):
                raise ValueError("expected a JSON object with issue_comments/review_comments")
            doc = convert_to_review_comment_json(raw)
            out_path = os.path.join(output_dir, os.path.relpath(path, input_dir))
            ensure_dir(os.path.dirname(out_path))
            save_json(out_path, doc)
        except (OSError, ValueError) as exc:
            print(f"[warn] failed to convert {path}: {exc}")
            failed += 1
            continue
        converted += 1
        print(f"  -> saved to: {out_path}")
    return converted, failed


def strip_stats_in_directory(data_dir: str) -> Tuple[int, int]:
    """Remove PR stats bot comments from every dump under ``data_dir`` in place.

    Returns (files changed, comments removed).
    """
    changed = removed_total = 0
    for path in iter_json_files(data_dir):
        try:
            doc = load_json_file(path)
            if not isinstance(doc, dict):
                continue
            doc, removed = strip_stats_comments(doc)
            if not removed:
                print(f"  -> no comments to remove in {path}")
                continue
            save_json(path, doc)
        except (OSError, ValueError) as exc:
            print(f"[warn] failed to process {path}: {exc}")
            continue
        changed += 1
        removed_total += removed
        print(f"  -> removed {removed} comment(s) from {path}")
    return changed, removed_total


__all__ = ["convert_directory", "strip_stats_in_directory"]
