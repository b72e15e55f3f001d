"""Tests for pralyzer.pipeline.driver: resumable keyword fetch, classification, full listing.

Run with coverage:
    pytest tests/test_driver.py --maxfail=1 -v --cov=pralyzer.pipeline.driver --cov-report=term-missing
"""

import json
import re
from unittest.mock import MagicMock, patch

import pytest

from pralyzer.classification.client import ClassificationError, Verdict
from pralyzer.ledger import LedgerError, ProgressLedger
from pralyzer.pipeline import driver
from pralyzer.pipeline.config import PipelineSettings
from pralyzer.retrieval.errors import ApiError, RateLimitError
from pralyzer.retrieval.http_client import GitHubClient

SETTINGS = PipelineSettings().with_waits(0.01)


def _bundle(number):
    return {"issue_comments": [{"id": number, "body": "x"}], "review_comments": []}


def _comments_failing_for(*bad):
    def get_comments(client, number, per_page=100):
        if number in bad:
            raise ApiError(404, "Not Found")
        return _bundle(number)
    return get_comments


def _ledger_numbers(path):
    return json.loads(path.read_text())


# process_item / BatchDriver

def test_process_item_outcomes(tmp_path):
    ledger = ProgressLedger(str(tmp_path / "idx.json")).load()
    ok = driver.process_item(1, ledger, lambda n: n * 2)
    assert ok.outcome is driver.Outcome.SUCCESS and ok.payload == 2
    assert driver.process_item(1, ledger, lambda n: n).outcome is driver.Outcome.SKIPPED

    def limited(n):
        raise RateLimitError(403, "API rate limit exceeded")
    assert driver.process_item(2, ledger, limited).outcome is driver.Outcome.RATE_LIMITED

    def broken(n):
        raise ValueError("bad")
    failed = driver.process_item(3, ledger, broken)
    assert failed.outcome is driver.Outcome.FAILED
    assert 2 not in ledger and 3 not in ledger


def test_item_failure_is_never_treated_as_rate_limit(tmp_path):
    ledger = ProgressLedger(str(tmp_path / "idx.json")).load()

    def parse_error(n):
        raise driver.ItemFailure("Expecting ',' delimiter (char 429)")
    result = driver.process_item(1, ledger, parse_error, statuses=(429,))
    assert result.outcome is driver.Outcome.FAILED


@patch("pralyzer.pipeline.driver.wait_for_rate_limit")
def test_run_items_retries_same_item_after_checkpoint(mock_wait, tmp_path):
    path = tmp_path / "idx.json"
    ledger = ProgressLedger(str(path)).load()
    seen_on_disk = []
    mock_wait.side_effect = lambda *_: seen_on_disk.append(_ledger_numbers(path))

    attempts = []
    def action(number):
        attempts.append(number)
        if number == 7 and attempts.count(7) == 1:
            raise RateLimitError(403, "API rate limit exceeded")
        return number

    batch = driver.BatchDriver(ledger, wait_sec=5400, heartbeat_sec=600)
    assert batch.run_items([5, 7, 8], action) == 3
    assert attempts == [5, 7, 7, 8]
    assert seen_on_disk == [[5]]
    mock_wait.assert_called_once_with(5400, 600)
    assert batch.summary.processed == 3


def test_run_items_checkpoints_every_n_successes(tmp_path):
    path = tmp_path / "idx.json"
    ledger = ProgressLedger(str(path)).load()
    batch = driver.BatchDriver(ledger, wait_sec=0, heartbeat_sec=0, checkpoint_every=2)
    batch.run_items([1, 2, 3], lambda n: n)
    assert _ledger_numbers(path) == [1, 2]
    assert ledger.pending == (3,)


@patch("pralyzer.pipeline.driver.wait_for_rate_limit")
def test_not_found_on_pr_429_fails_without_waiting(mock_wait, tmp_path):
    response = MagicMock(status_code=404, headers={})
    response.json.return_value = {"message": "Not Found"}
    session = MagicMock()
    session.request.return_value = response
    client = GitHubClient("octo", "repo", session=session)
    ledger = ProgressLedger(str(tmp_path / "idx.json")).load()
    batch = driver.BatchDriver(ledger, wait_sec=5400, heartbeat_sec=600)

    assert batch.run_items([403, 429], lambda n: driver.get_comments(client, n)) == 0

    mock_wait.assert_not_called()
    assert batch.summary.errored == 2
    assert 429 not in ledger


def test_keyword_dir_name():
    assert driver.keyword_dir_name("sql injection") == "sql injection"
    assert driver.keyword_dir_name("a/b") == "a_b"


# run_keyword_fetch

@patch("pralyzer.pipeline.driver.get_comments", side_effect=_comments_failing_for(43))
@patch("pralyzer.pipeline.driver.search_pull_requests_with_comment_keyword", return_value=[42, 43])
def test_keyword_fetch_end_to_end(mock_search, mock_comments, tmp_path):
    summary = driver.run_keyword_fetch(MagicMock(), ["sql injection"], str(tmp_path), SETTINGS)

    assert _ledger_numbers(tmp_path / ".processed_prs.json") == [42]
    keyword_dir = tmp_path / "sql injection"
    assert json.loads((keyword_dir / "42.json").read_text()) == _bundle(42)
    assert not (keyword_dir / "43.json").exists()
    assert (summary.fetched, summary.processed, summary.skipped, summary.errored) == (2, 1, 0, 1)


@patch("pralyzer.pipeline.driver.get_comments", side_effect=_comments_failing_for())
@patch("pralyzer.pipeline.driver.search_pull_requests_with_comment_keyword", return_value=[42, 43])
def test_keyword_fetch_rerun_is_idempotent(mock_search, mock_comments, tmp_path):
    driver.run_keyword_fetch(MagicMock(), ["sql injection"], str(tmp_path), SETTINGS)
    ledger_after_first = _ledger_numbers(tmp_path / ".processed_prs.json")
    files_after_first = sorted(p.name for p in (tmp_path / "sql injection").iterdir())
    mock_comments.reset_mock()

    summary = driver.run_keyword_fetch(MagicMock(), ["sql injection"], str(tmp_path), SETTINGS)

    mock_comments.assert_not_called()
    assert summary.skipped == 2 and summary.processed == 0
    assert _ledger_numbers(tmp_path / ".processed_prs.json") == ledger_after_first == [42, 43]
    assert sorted(p.name for p in (tmp_path / "sql injection").iterdir()) == files_after_first


@patch("pralyzer.pipeline.driver.get_comments", side_effect=_comments_failing_for(43))
@patch("pralyzer.pipeline.driver.search_pull_requests_with_comment_keyword", return_value=[42, 43])
def test_failed_item_is_retried_on_next_run(mock_search, mock_comments, tmp_path):
    driver.run_keyword_fetch(MagicMock(), ["xss"], str(tmp_path), SETTINGS)
    mock_comments.side_effect = _comments_failing_for()
    mock_comments.reset_mock()

    driver.run_keyword_fetch(MagicMock(), ["xss"], str(tmp_path), SETTINGS)

    assert [c.args[1] for c in mock_comments.call_args_list] == [43]
    assert _ledger_numbers(tmp_path / ".processed_prs.json") == [42, 43]


@patch("pralyzer.pipeline.driver.get_comments", side_effect=_comments_failing_for())
@patch("pralyzer.pipeline.driver.search_pull_requests_with_comment_keyword")
def test_keyword_fetch_shares_ledger_across_keywords(mock_search, mock_comments, tmp_path):
    mock_search.side_effect = [[1, 2], [], ApiError(422, "Validation Failed"), [2, 3]]
    summary = driver.run_keyword_fetch(MagicMock(), ["a", "b", "c", "d"], str(tmp_path), SETTINGS)

    assert [c.args[1] for c in mock_comments.call_args_list] == [1, 2, 3]
    assert summary.failed_groups == ["c"]
    assert summary.skipped == 1
    assert not (tmp_path / "b").exists()
    assert (tmp_path / "d" / "3.json").exists()


@patch("pralyzer.retrieval.pagination.wait_for_rate_limit")
@patch("pralyzer.pipeline.driver.get_comments", side_effect=_comments_failing_for())
def test_rate_limited_search_checkpoints_and_retries_same_page(mock_comments, mock_wait, tmp_path):
    ledger_path = tmp_path / ".processed_prs.json"
    events = []
    real_checkpoint = driver.BatchDriver.checkpoint

    def recording_checkpoint(self, reason):
        events.append(("checkpoint", reason))
        real_checkpoint(self, reason)

    def record_wait(wait_sec, heartbeat_sec):
        events.append(("wait", _ledger_numbers(ledger_path)))

    mock_wait.side_effect = record_wait
    client = MagicMock(owner="octo")
    client.name = "repo"
    client.search_issues_page.side_effect = [
        ([{"number": 1, "pull_request": {"url": "u"}}, {"number": 2, "pull_request": {"url": "u"}}], None),
        RateLimitError(403, "API rate limit exceeded", retry_after=60),
        ([{"number": 2, "pull_request": {"url": "u"}}, {"number": 3, "pull_request": {"url": "u"}}], None),
    ]

    with patch.object(driver.BatchDriver, "checkpoint", recording_checkpoint):
        summary = driver.run_keyword_fetch(client, ["a", "b"], str(tmp_path), SETTINGS)

    wait_index = events.index(("wait", [1, 2]))
    assert events[wait_index - 1] == ("checkpoint", "rate limit")
    mock_wait.assert_called_once_with(SETTINGS.search_wait_sec, SETTINGS.heartbeat_sec)
    searches = [c.args for c in client.search_issues_page.call_args_list]
    assert searches[1] == searches[2]
    assert searches[2][0].endswith(" b") and searches[2][1] == 1
    assert [c.args[1] for c in mock_comments.call_args_list] == [1, 2, 3]
    assert summary.skipped == 1
    assert _ledger_numbers(ledger_path) == [1, 2, 3]


def test_keyword_fetch_with_corrupt_ledger_is_fatal(tmp_path):
    (tmp_path / ".processed_prs.json").write_text("{oops")
    with pytest.raises(LedgerError):
        driver.run_keyword_fetch(MagicMock(), ["a"], str(tmp_path), SETTINGS)


# run_classification

def _conversations(tmp_path):
    input_dir = tmp_path / "data"
    (input_dir / "sql injection").mkdir(parents=True)
    (input_dir / "sql injection" / "42.json").write_text('{"issue_comments": []}')
    (input_dir / "sql injection" / "43.json").write_text("{broken")
    (input_dir / "notes.json").write_text("{}")
    (input_dir / ".processed_prs.json").write_text("[42, 43]")
    return input_dir


def _read_jsonl(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def test_classification_writes_results_and_index(tmp_path, capsys):
    input_dir = _conversations(tmp_path)
    output = tmp_path / "out" / "results.jsonl"
    classifier = MagicMock()
    classifier.classify.return_value = Verdict("f-string query", "SQLi")

    summary = driver.run_classification(classifier, str(input_dir), str(output), SETTINGS)

    assert _read_jsonl(output) == [{"pr": 42, "relevant_discussion": "f-string query", "reason": "SQLi"}]
    assert _ledger_numbers(tmp_path / "out" / ".results_index.json") == [42]
    assert summary.processed == 1 and summary.errored == 1 and summary.skipped == 1
    classifier.classify.assert_called_once_with('{"issue_comments": []}')
    out = capsys.readouterr().out
    assert "completed PR #42 (flagged)" in out
    assert re.search(r"Flagged this run:\s+1\n", out)


def test_classification_rerun_adds_nothing(tmp_path):
    input_dir = _conversations(tmp_path)
    output = tmp_path / "results.jsonl"
    classifier = MagicMock()
    classifier.classify.return_value = Verdict("", "")

    driver.run_classification(classifier, str(input_dir), str(output), SETTINGS)
    driver.run_classification(classifier, str(input_dir), str(output), SETTINGS)

    assert classifier.classify.call_count == 1
    assert len(_read_jsonl(output)) == 1
    assert _ledger_numbers(tmp_path / ".results_index.json") == [42]


def test_classification_failure_writes_no_placeholder(tmp_path):
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    (input_dir / "42.json").write_text("{}")
    (input_dir / "43.json").write_text("{}")
    output = tmp_path / "results.jsonl"
    classifier = MagicMock()
    classifier.classify.side_effect = [Verdict("x", "y"), ClassificationError("empty content in response")]

    summary = driver.run_classification(classifier, str(input_dir), str(output), SETTINGS)

    assert [r["pr"] for r in _read_jsonl(output)] == [42]
    assert _ledger_numbers(tmp_path / ".results_index.json") == [42]
    assert summary.errored == 1


@patch("pralyzer.pipeline.driver.wait_for_rate_limit")
def test_classification_waits_and_retries_on_429(mock_wait, tmp_path):
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    (input_dir / "7.json").write_text("{}")
    output = tmp_path / "results.jsonl"
    classifier = MagicMock()
    classifier.classify.side_effect = [Exception("Error code: 429 - Rate limit reached"), Verdict("a", "b")]

    driver.run_classification(classifier, str(input_dir), str(output), SETTINGS)

    mock_wait.assert_called_once()
    assert [r["pr"] for r in _read_jsonl(output)] == [7]


@patch("pralyzer.pipeline.driver.wait_for_rate_limit")
def test_classification_ignores_github_style_403(mock_wait, tmp_path):
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    (input_dir / "7.json").write_text("{}")
    classifier = MagicMock()
    classifier.classify.side_effect = Exception("Error code: 403 - forbidden")

    summary = driver.run_classification(classifier, str(input_dir), str(tmp_path / "r.jsonl"), SETTINGS)

    mock_wait.assert_not_called()
    assert summary.errored == 1


# run_full_listing

@patch("pralyzer.pipeline.driver.list_all_pull_requests")
def test_full_listing_saves_each_pr(mock_list, tmp_path):
    mock_list.return_value = [{"number": 1, "title": "a"}, {"title": "no number"}, {"number": 2}]
    client = MagicMock()
    client.full_name = "octo/repo"

    summary = driver.run_full_listing(client, str(tmp_path / "prs"), SETTINGS)

    assert json.loads((tmp_path / "prs" / "1.json").read_text())["title"] == "a"
    assert (tmp_path / "prs" / "2.json").exists()
    assert (summary.fetched, summary.processed, summary.skipped, summary.errored) == (3, 2, 1, 0)
    assert mock_list.call_args.kwargs["wait_sec"] == SETTINGS.list_wait_sec


@patch("pralyzer.pipeline.driver.list_all_pull_requests", side_effect=ApiError(404, "Not Found"))
def test_full_listing_stops_on_listing_failure(mock_list, tmp_path):
    with pytest.raises(ApiError):
        driver.run_full_listing(MagicMock(), str(tmp_path / "prs"), SETTINGS)
    assert not (tmp_path / "prs").exists()


def test_summary_prints_counts(capsys):
    summary = driver.RunSummary(fetched=3, processed=1, skipped=1, errored=1, failed_groups=["c"])
    summary.print_summary(extra={"Ledger": "x"})
    out = capsys.readouterr().out
    assert "Total fetched:" in out and "Failed keywords:" in out and "Ledger:" in out
