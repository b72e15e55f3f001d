"""Checkpointed, rate-limit-aware batch drivers for fetching and classifying PRs."""

from __future__ import annotations

import enum
import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pralyzer.classification.client import VulnerabilityClassifier
from pralyzer.classification.config import OPENAI_RATE_LIMIT_STATUSES
from pralyzer.ledger import PROCESSED_PRS_FILENAME, ProgressLedger, index_path_for, load_ledger
from pralyzer.retrieval.collectors import (
    append_jsonl,
    count_jsonl_records,
    ensure_dir,
    get_comments,
    iter_json_files,
    list_all_pull_requests,
    save_json,
    search_pull_requests_with_comment_keyword,
)
from pralyzer.retrieval.config import GITHUB_RATE_LIMIT_STATUSES
from pralyzer.retrieval.http_client import GitHubClient
from pralyzer.retrieval.ratelimit import format_duration, is_rate_limited, reset_hint, wait_for_rate_limit

from .config import PipelineSettings


class ItemFailure(Exception):
    """A local, non-retryable problem with one item (unreadable input file, bad JSON)."""


class Outcome(enum.Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


@dataclass
class ProcessResult:
    outcome: Outcome
    payload: Any = None
    error: Optional[BaseException] = None


@dataclass
class RunSummary:
    """Counts reported at the end of a run."""

    fetched: int = 0
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    failed_groups: List[str] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        if outcome is Outcome.SUCCESS:
            self.processed += 1
        elif outcome is Outcome.SKIPPED:
            self.skipped += 1
        elif outcome is Outcome.FAILED:
            self.errored += 1

    def print_summary(self, title: str = "Summary", extra: Optional[Dict[str, Any]] = None) -> None:
        rows: List[Tuple[str, Any]] = [
            ("Total fetched", self.fetched),
            ("Processed", self.processed),
            ("Skipped", self.skipped),
            ("Errors", self.errored),
        ]
        if self.failed_groups:
            rows.append(("Failed keywords", ", ".join(self.failed_groups)))
        rows.extend((extra or {}).items())
        print("\n========================================")
        print(title)
        print("========================================")
        for label, value in rows:
            print(f"{label + ':':<22} {value}")
        print("========================================")


def process_item(
    number: int,
    ledger: ProgressLedger,
    action: Callable[[int], Any],
    statuses: Iterable[int] = GITHUB_RATE_LIMIT_STATUSES,
) -> ProcessResult:
    """Run ``action`` for one PR unless the ledger already has it.

    Success is recorded in the ledger; failures never are.
    """
    if number in ledger:
        return ProcessResult(Outcome.SKIPPED)
    try:
        payload = action(number)
    except ItemFailure as exc:
        return ProcessResult(Outcome.FAILED, error=exc)
    except Exception as exc:
        if is_rate_limited(exc, statuses):
            return ProcessResult(Outcome.RATE_LIMITED, error=exc)
        return ProcessResult(Outcome.FAILED, error=exc)
    ledger.add(number)
    return ProcessResult(Outcome.SUCCESS, payload=payload)


class BatchDriver:
    """Feeds PR numbers through ``process_item`` with checkpoints and waits."""

    def __init__(
        self,
        ledger: ProgressLedger,
        *,
        wait_sec: float,
        heartbeat_sec: float,
        statuses: Iterable[int] = GITHUB_RATE_LIMIT_STATUSES,
        checkpoint_every: int = 10,
        summary: Optional[RunSummary] = None,
    ) -> None:
        self.ledger = ledger
        self.wait_sec = wait_sec
        self.heartbeat_sec = heartbeat_sec
        self.statuses = tuple(statuses)
        self.checkpoint_every = max(1, checkpoint_every)
        self.summary = summary or RunSummary()

    def checkpoint(self, reason: str) -> None:
        flushed = self.ledger.flush()
        if flushed:
            print(f"[checkpoint] saved {flushed} processed PRs ({reason}) -> {self.ledger.path}")

    def wait_out_rate_limit(self, what: str, exc: BaseException) -> None:
        """Checkpoint first, then block for the configured wait."""
        print(f"[rate-limit] {what}: {exc}{reset_hint(exc)}; waiting {format_duration(self.wait_sec)}")
        self.checkpoint("rate limit")
        wait_for_rate_limit(self.wait_sec, self.heartbeat_sec)

    def run_items(self, numbers: Iterable[int], action: Callable[[int], Any]) -> int:
        """Process ``numbers`` in order; returns how many succeeded."""
        succeeded = 0
        for number in numbers:
            while True:
                result = process_item(number, self.ledger, action, self.statuses)
                if result.outcome is not Outcome.RATE_LIMITED:
                    break
                self.wait_out_rate_limit(f"PR #{number}", result.error)
                print(f"[rate-limit] retrying PR #{number}...")

            self.summary.record(result.outcome)
            if result.outcome is Outcome.SKIPPED:
                print(f"[skip] PR #{number} (already processed)")
            elif result.outcome is Outcome.FAILED:
                print(f"[warn] PR #{number} failed: {result.error}")
            else:
                succeeded += 1
                if succeeded % self.checkpoint_every == 0:
                    self.checkpoint(f"{succeeded} processed")
        return succeeded


def keyword_dir_name(keyword: str) -> str:
    """Directory name for a keyword's output; path separators are replaced."""
    name = keyword.strip().replace("/", "_").replace("\\", "_")
    return name or "_"


def run_keyword_fetch(
    client: GitHubClient,
    words: List[str],
    data_dir: str,
    settings: Optional[PipelineSettings] = None,
) -> RunSummary:
    """Search PRs per keyword and save each PR's comments as ``<keyword>/<n>.json``.

    The ledger lives at ``<data_dir>/.processed_prs.json`` and is shared by all
    keywords, so a PR found under two keywords is saved once.
    """
    settings = settings or PipelineSettings()
    ensure_dir(data_dir)
    ledger = load_ledger(os.path.join(data_dir, PROCESSED_PRS_FILENAME), settings.ledger_buffer_size)
    print(f"Loaded {len(ledger)} previously processed PRs")

    driver = BatchDriver(
        ledger,
        wait_sec=settings.search_wait_sec,
        heartbeat_sec=settings.heartbeat_sec,
        statuses=GITHUB_RATE_LIMIT_STATUSES,
        checkpoint_every=settings.checkpoint_every,
    )
    summary = driver.summary

    for word in words:
        print(f"\n=== Processing keyword: {word} ===")
        try:
            numbers = search_pull_requests_with_comment_keyword(
                client,
                word,
                wait_sec=settings.search_wait_sec,
                heartbeat_sec=settings.heartbeat_sec,
                per_page=settings.per_page,
                on_rate_limit=lambda: driver.checkpoint("rate limit"),
            )
        except Exception as exc:
            print(f"[warn] failed to search PRs with keyword '{word}': {exc}")
            summary.failed_groups.append(word)
            continue

        summary.fetched += len(numbers)
        if not numbers:
            print(f"No PRs found for keyword '{word}'. Skipping.")
            continue
        print(f"Found {len(numbers)} PRs for keyword '{word}'")

        keyword_dir = os.path.join(data_dir, keyword_dir_name(word))
        ensure_dir(keyword_dir)

        def fetch_and_save(number: int, keyword_dir: str = keyword_dir) -> str:
            print(f"Fetching comments for PR #{number}")
            comments = get_comments(client, number, per_page=settings.per_page)
            output_path = os.path.join(keyword_dir, f"{number}.json")
            save_json(output_path, comments)
            print(f"  saved comments for PR #{number} to {output_path}")
            return output_path

        driver.run_items(numbers, fetch_and_save)
        driver.checkpoint(f"keyword '{word}' done")

    driver.checkpoint("run complete")
    summary.print_summary(extra={"Ledger": ledger.path})
    return summary


def read_conversation(path: str) -> str:
    """Return the file text after checking it parses as JSON."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise ItemFailure(f"failed to read {path}: {exc.strerror or exc}") from exc
    try:
        json.loads(text)
    except ValueError as exc:
        raise ItemFailure(f"invalid JSON in {os.path.basename(path)}") from exc
    return text


def discover_pr_files(input_dir: str, summary: Optional[RunSummary] = None) -> Dict[int, str]:
    """Map PR number -> first ``<number>.json`` found under ``input_dir``."""
    found: Dict[int, str] = {}
    for path in iter_json_files(input_dir):
        stem = os.path.splitext(os.path.basename(path))[0]
        if not stem.isdigit():
            print(f"[warn] skipping file {os.path.basename(path)}: not a PR number")
            if summary is not None:
                summary.skipped += 1
            continue
        found.setdefault(int(stem), path)
    return found


def initialize_output(output_file: str) -> None:
    """Create the output directory and an empty output file if missing."""
    directory = os.path.dirname(output_file)
    if directory:
        ensure_dir(directory)
    if not os.path.exists(output_file):
        open(output_file, "a", encoding="utf-8").close()


def run_classification(
    classifier: VulnerabilityClassifier,
    input_dir: str,
    output_file: str,
    settings: Optional[PipelineSettings] = None,
) -> RunSummary:
    """Classify every ``<number>.json`` conversation and append verdicts as JSONL.

    Items that fail (bad input, model error) get no output line and stay out of
    the ledger so the next run retries them.
    """
    settings = settings or PipelineSettings()
    initialize_output(output_file)
    index_file = index_path_for(output_file)
    ledger = load_ledger(index_file, settings.ledger_buffer_size)
    print(f"Loaded {len(ledger)} previously processed PRs from {index_file}")

    driver = BatchDriver(
        ledger,
        wait_sec=settings.classify_wait_sec,
        heartbeat_sec=settings.heartbeat_sec,
        statuses=OPENAI_RATE_LIMIT_STATUSES,
        checkpoint_every=settings.checkpoint_every,
    )
    summary = driver.summary
    paths = discover_pr_files(input_dir, summary)
    summary.fetched = len(paths)
    flagged: List[int] = []

    def classify_and_append(number: int) -> Dict[str, Any]:
        path = paths[number]
        print(f"Processing PR #{number}: {path}")
        conversation = read_conversation(path)
        verdict = classifier.classify(conversation)
        record = verdict.to_record(number)
        append_jsonl(output_file, record)
        if verdict.is_relevant:
            flagged.append(number)
        print(f"  completed PR #{number}" + (" (flagged)" if verdict.is_relevant else ""))
        return record

    driver.run_items(sorted(paths), classify_and_append)
    driver.checkpoint("run complete")
    summary.print_summary(extra={
        "Flagged this run": len(flagged),
        "Results in output": count_jsonl_records(output_file),
        "Output file": output_file,
        "Index file": index_file,
    })
    return summary


def run_full_listing(
    client: GitHubClient,
    out_dir: str,
    settings: Optional[PipelineSettings] = None,
) -> RunSummary:
    """Save every PR of the repository as ``<out_dir>/<number>.json``.

    Rate limits while listing wait and retry the same page; any other listing
    failure propagates and ends the run.
    """
    settings = settings or PipelineSettings()
    summary = RunSummary()
    print(f"Fetching all pull requests from {client.full_name}")
    start = time.time()
    prs = list_all_pull_requests(
        client,
        wait_sec=settings.list_wait_sec,
        heartbeat_sec=settings.heartbeat_sec,
        per_page=settings.per_page,
    )
    fetch_duration = time.time() - start
    summary.fetched = len(prs)
    print(f"Fetched {len(prs)} pull requests in {format_duration(fetch_duration)}")

    ensure_dir(out_dir)
    last_progress = time.time()
    for index, pr in enumerate(prs, start=1):
        number = pr.get("number")
        if not isinstance(number, int):
            print("[warn] skipping PR with no number")
            summary.skipped += 1
            continue
        output_path = os.path.join(out_dir, f"{number}.json")
        try:
            save_json(output_path, pr)
        except (OSError, TypeError, ValueError) as exc:
            print(f"[error] failed to write PR #{number}: {exc}")
            summary.errored += 1
            continue
        summary.processed += 1
        if index % settings.progress_every == 0 or time.time() - last_progress >= 5:
            pct = index / len(prs) * 100
            print(f"Progress: {index}/{len(prs)} ({pct:.1f}%) - saved PR #{number}")
            last_progress = time.time()

    total_duration = time.time() - start
    summary.print_summary(extra={
        "Fetch duration": format_duration(fetch_duration),
        "Save duration": format_duration(total_duration - fetch_duration),
        "Total duration": format_duration(total_duration),
        "Output directory": out_dir,
    })
    return summary


__all__ = [
    "ItemFailure",
    "Outcome",
    "ProcessResult",
    "RunSummary",
    "process_item",
    "BatchDriver",
    "keyword_dir_name",
    "run_keyword_fetch",
    "read_conversation",
    "discover_pr_files",
    "initialize_output",
    "run_classification",
    "run_full_listing",
]
