"""Fetch pull-request discussions and flag security-relevant threads."""

__version__ = "0.1.0"
