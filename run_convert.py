"""Convenience shim to reshape raw comment dumps."""

from __future__ import annotations

import sys

from pralyzer.pipeline.runner import convert_main


if __name__ == "__main__":
    convert_main(sys.argv[1:])
