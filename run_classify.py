"""Convenience shim to classify saved PR conversations."""

from __future__ import annotations

import sys

from pralyzer.pipeline.runner import classify_main


if __name__ == "__main__":
    classify_main(sys.argv[1:])
