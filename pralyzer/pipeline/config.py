"""Runtime settings shared by the batch drivers."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from pralyzer.classification.config import RATE_LIMIT_WAIT_SEC
from pralyzer.retrieval.config import (
    HEARTBEAT_INTERVAL_SEC,
    LIST_RATE_LIMIT_WAIT_SEC,
    PER_PAGE,
    SEARCH_RATE_LIMIT_WAIT_SEC,
)

LEDGER_BUFFER_SIZE = int(os.getenv("LEDGER_BUFFER_SIZE", "100"))
CHECKPOINT_EVERY = int(os.getenv("CHECKPOINT_EVERY", "10"))
PROGRESS_EVERY = int(os.getenv("PROGRESS_EVERY", "10"))
OUTPUT_DIR = "./output"


@dataclass(frozen=True)
class PipelineSettings:
    """Resolved runtime settings for one pipeline run."""

    per_page: int = PER_PAGE
    search_wait_sec: float = SEARCH_RATE_LIMIT_WAIT_SEC
    list_wait_sec: float = LIST_RATE_LIMIT_WAIT_SEC
    classify_wait_sec: float = RATE_LIMIT_WAIT_SEC
    heartbeat_sec: float = HEARTBEAT_INTERVAL_SEC
    ledger_buffer_size: int = LEDGER_BUFFER_SIZE
    checkpoint_every: int = CHECKPOINT_EVERY
    progress_every: int = PROGRESS_EVERY

    def with_waits(self, seconds: float) -> "PipelineSettings":
        """Return a copy where every rate-limit wait lasts ``seconds``."""
        return replace(
            self,
            search_wait_sec=seconds,
            list_wait_sec=seconds,
            classify_wait_sec=seconds,
        )


__all__ = [
    "LEDGER_BUFFER_SIZE",
    "CHECKPOINT_EVERY",
    "PROGRESS_EVERY",
    "OUTPUT_DIR",
    "PipelineSettings",
]
