"""Central configuration constants for the GitHub retrieval workflow."""

from __future__ import annotations

import os
from typing import Tuple

USER_AGENT = "pralyzer-github-retrieval/1.0"
BASE_URL = "https://api.github.com"
PER_PAGE = 100
REQUEST_TIMEOUT = 90
MAX_RETRIES = 6
BACKOFF_BASE_SEC = 2
DATA_DIR = os.getenv("PRALYZER_DATA_DIR", "./data")
WORD_LIST_FILE = os.getenv("PRALYZER_WORD_LIST", "word_list.json")

# GitHub answers primary limits with 403 and secondary limits with 429.
GITHUB_RATE_LIMIT_STATUSES: Tuple[int, ...] = (403, 429)

SEARCH_RATE_LIMIT_WAIT_SEC = int(os.getenv("SEARCH_RATE_LIMIT_WAIT_SEC", str(90 * 60)))
LIST_RATE_LIMIT_WAIT_SEC = int(os.getenv("LIST_RATE_LIMIT_WAIT_SEC", str(65 * 60)))
HEARTBEAT_INTERVAL_SEC = int(os.getenv("HEARTBEAT_INTERVAL_SEC", str(10 * 60)))

__all__ = [
    "USER_AGENT",
    "BASE_URL",
    "PER_PAGE",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "BACKOFF_BASE_SEC",
    "DATA_DIR",
    "WORD_LIST_FILE",
    "GITHUB_RATE_LIMIT_STATUSES",
    "SEARCH_RATE_LIMIT_WAIT_SEC",
    "LIST_RATE_LIMIT_WAIT_SEC",
    "HEARTBEAT_INTERVAL_SEC",
]
