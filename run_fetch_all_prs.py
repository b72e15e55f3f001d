"""Convenience shim to save every pull request of a repository."""

from __future__ import annotations

import sys

from pralyzer.pipeline.runner import fetch_all_prs_main


if __name__ == "__main__":
    fetch_all_prs_main(sys.argv[1:])
