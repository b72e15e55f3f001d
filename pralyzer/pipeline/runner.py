"""Command-line entry points for the fetch, classify and reshape workflows."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, NoReturn, Optional

from pralyzer.classification.client import VulnerabilityClassifier
from pralyzer.ledger import LedgerError
from pralyzer.retrieval.collectors import load_word_list
from pralyzer.retrieval.config import DATA_DIR, WORD_LIST_FILE
from pralyzer.retrieval.errors import ApiError
from pralyzer.retrieval.http_client import GitHubClient
from pralyzer.secrets import secret_or_env

from .config import OUTPUT_DIR, PipelineSettings
from .driver import run_classification, run_full_listing, run_keyword_fetch
from .reshape import convert_directory, strip_stats_in_directory

FATAL_ERRORS = (LedgerError, ApiError, OSError, ValueError)


def _fail(message: str) -> NoReturn:
    print(f"[error] {message}")
    sys.exit(1)


def _build_github_client(repository: str, token: Optional[str]) -> GitHubClient:
    try:
        return GitHubClient.from_repository(repository, token)
    except ValueError as exc:
        _fail(f"failed to create GitHub client: {exc}")


def fetch_comments_main(argv: Optional[List[str]] = None) -> None:
    """Search PRs whose comments mention each word list keyword and save their comments."""
    parser = argparse.ArgumentParser(
        description="Fetch comments of merged PRs matching each keyword in word_list.json.",
    )
    parser.add_argument("repository_url", help="owner/name or https://github.com/owner/name")
    parser.add_argument("github_pat", nargs="?", default=None, help="optional, avoids low rate limits")
    args = parser.parse_args(argv)

    token = args.github_pat or secret_or_env("github_token", "GITHUB_TOKEN")
    if not token:
        print("[warn] no GitHub PAT provided; rate limiting may occur")
    client = _build_github_client(args.repository_url, token)

    try:
        words = load_word_list(WORD_LIST_FILE)
    except (OSError, ValueError) as exc:
        _fail(f"failed to load word list {WORD_LIST_FILE}: {exc}")

    data_dir = os.path.join(DATA_DIR, client.owner, client.name)
    try:
        run_keyword_fetch(client, words, data_dir, PipelineSettings())
    except FATAL_ERRORS as exc:
        _fail(str(exc))
    print("\nDone!")


def fetch_all_prs_main(argv: Optional[List[str]] = None) -> None:
    """Save every pull request of a repository as one JSON file each."""
    parser = argparse.ArgumentParser(description="Fetch all pull requests of a repository.")
    parser.add_argument("repository_url", help="owner/name or https://github.com/owner/name")
    parser.add_argument("github_pat")
    args = parser.parse_args(argv)

    client = _build_github_client(args.repository_url, args.github_pat)
    out_dir = os.path.join(DATA_DIR, client.owner, client.name)
    try:
        run_full_listing(client, out_dir, PipelineSettings())
    except FATAL_ERRORS as exc:
        _fail(f"failed to list pull requests: {exc}")
    print("Done!")


def classify_main(argv: Optional[List[str]] = None) -> None:
    """Classify saved conversations and append verdicts to a JSONL file."""
    parser = argparse.ArgumentParser(
        description="Flag security-relevant PR discussions with an OpenAI model.",
    )
    parser.add_argument("input_directory")
    parser.add_argument("output_file")
    parser.add_argument("openai_api_key")
    args = parser.parse_args(argv)

    if not os.path.isdir(args.input_directory):
        _fail(f"input directory does not exist: {args.input_directory}")
    classifier = VulnerabilityClassifier(args.openai_api_key)
    try:
        run_classification(classifier, args.input_directory, args.output_file, PipelineSettings())
    except FATAL_ERRORS as exc:
        _fail(str(exc))


def convert_main(argv: Optional[List[str]] = None) -> None:
    """Reshape raw comment dumps into the compact review-comment format."""
    parser = argparse.ArgumentParser(description="Convert raw PR comment dumps under a directory.")
    parser.add_argument("input_directory")
    args = parser.parse_args(argv)

    try:
        os.makedirs(OUTPUT_DIR, exist_ok=True)
    except OSError as exc:
        _fail(f"failed to create output directory: {exc}")
    converted, failed = convert_directory(args.input_directory, OUTPUT_DIR)
    print(f"\nDone! converted {converted} file(s), {failed} failed")


def strip_stats_main(argv: Optional[List[str]] = None) -> None:
    """Remove "## Stats from current PR" bot comments from saved dumps."""
    parser = argparse.ArgumentParser(description="Strip PR stats bot comments in place.")
    parser.add_argument("data_directory", nargs="?", default=DATA_DIR)
    args = parser.parse_args(argv)

    if not os.path.isdir(args.data_directory):
        _fail(f"directory does not exist: {args.data_directory}")
    changed, removed = strip_stats_in_directory(args.data_directory)
    print(f"\nDone! removed {removed} comment(s) across {changed} file(s)")


__all__ = [
    "fetch_comments_main",
    "fetch_all_prs_main",
    "classify_main",
    "convert_main",
    "strip_stats_main",
]
