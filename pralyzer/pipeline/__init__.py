"""Batch drivers and command-line entry points."""

from .driver import run_classification, run_full_listing, run_keyword_fetch
from .runner import classify_main, fetch_all_prs_main, fetch_comments_main

__all__ = [
    "run_classification",
    "run_full_listing",
    "run_keyword_fetch",
    "classify_main",
    "fetch_all_prs_main",
    "fetch_comments_main",
]
