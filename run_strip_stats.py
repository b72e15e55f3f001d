"""Convenience shim to strip PR stats bot comments."""

from __future__ import annotations

import sys

from pralyzer.pipeline.runner import strip_stats_main


if __name__ == "__main__":
    strip_stats_main(sys.argv[1:])
