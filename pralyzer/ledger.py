"""Durable record of processed pull requests with buffered checkpoints."""

from __future__ import annotations

import json
import os
from typing import Iterable, Iterator, List, Set, Tuple

PROCESSED_PRS_FILENAME = ".processed_prs.json"
DEFAULT_BUFFER_SIZE = 100


class LedgerError(RuntimeError):
    """The ledger file exists but cannot be read or parsed."""


def index_path_for(output_file: str) -> str:
    """Dotfile sibling of a JSONL output: ``out/results.jsonl`` -> ``out/.results_index.json``."""
    directory = os.path.dirname(output_file)
    stem, _ = os.path.splitext(os.path.basename(output_file))
    return os.path.join(directory, f".{stem}_index.json")


def read_ledger_file(path: str) -> Set[int]:
    """Read a JSON array of PR numbers; empty set when the file is absent."""
    if not os.path.exists(path):
        return set()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise LedgerError(f"failed to read ledger {path}: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(n, int) and not isinstance(n, bool) for n in data):
        raise LedgerError(f"ledger {path} must be a JSON array of integers")
    return set(data)


def write_ledger_file(path: str, numbers: Iterable[int]) -> None:
    """Overwrite ``path`` with the full, sorted set of numbers."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(sorted(set(numbers)), f)
    os.replace(tmp_path, path)


class ProgressLedger:
    """In-memory set of completed PR numbers backed by a JSON file.

    ``add`` buffers; ``flush`` re-reads the file and writes back the union, so
    a flush never drops numbers another writer persisted since ``load``.
    """

    def __init__(self, path: str, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self.path = path
        self.buffer_size = max(1, buffer_size)
        self._done: Set[int] = set()
        self._pending: List[int] = []

    def load(self) -> "ProgressLedger":
        """Replace the in-memory view with the file contents. Raises LedgerError."""
        self._done = read_ledger_file(self.path)
        self._pending = []
        return self

    def contains(self, number: int) -> bool:
        return number in self._done

    def __contains__(self, number: object) -> bool:
        return number in self._done

    def __len__(self) -> int:
        return len(self._done)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._done))

    @property
    def pending(self) -> Tuple[int, ...]:
        return tuple(self._pending)

    def add(self, number: int) -> None:
        """Mark ``number`` done; flush once the buffer reaches its threshold."""
        self._done.add(number)
        self._pending.append(number)
        if len(self._pending) >= self.buffer_size:
            self.flush()

    def flush(self) -> int:
        """Persist buffered numbers; returns how many were flushed."""
        if not self._pending:
            return 0
        try:
            on_disk = read_ledger_file(self.path)
        except LedgerError as exc:
            print(f"[warn] {exc}; rewriting ledger from memory")
            on_disk = set()
        merged = on_disk | self._done | set(self._pending)
        write_ledger_file(self.path, merged)
        self._done = merged
        flushed = len(self._pending)
        self._pending = []
        return flushed


def load_ledger(path: str, buffer_size: int = DEFAULT_BUFFER_SIZE) -> ProgressLedger:
    return ProgressLedger(path, buffer_size).load()


__all__ = [
    "PROCESSED_PRS_FILENAME",
    "DEFAULT_BUFFER_SIZE",
    "LedgerError",
    "index_path_for",
    "read_ledger_file",
    "write_ledger_file",
    "ProgressLedger",
    "load_ledger",
]
