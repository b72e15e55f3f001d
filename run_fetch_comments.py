"""Convenience shim to fetch comments of PRs matching the keyword list."""

from __future__ import annotations

import sys

from pralyzer.pipeline.runner import fetch_comments_main


if __name__ == "__main__":
    fetch_comments_main(sys.argv[1:])
