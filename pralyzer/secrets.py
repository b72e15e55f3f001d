"""Utilities for loading local (gitignored) credentials."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SECRETS_FILENAME = "local_secrets.json"


def _default_secrets_path() -> Path:
    root = Path(__file__).resolve().parents[1]
    return root / DEFAULT_SECRETS_FILENAME


def load_local_secrets(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Load secrets from a JSON file; return {} when unavailable.

    Expected keys are ``github_token`` and ``openai_api_key``.
    """

    candidate = path or os.getenv("LOCAL_SECRETS_FILE") or _default_secrets_path()
    secrets_path = Path(candidate).expanduser()
    if not secrets_path.is_file():
        return {}
    try:
        with secrets_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        print(f"[warn] ignoring unreadable secrets file {secrets_path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def secret_or_env(key: str, env_var: str, secrets: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Return a credential from the secrets file, falling back to an env var."""
    secrets = load_local_secrets() if secrets is None else secrets
    value = secrets.get(key) or os.getenv(env_var)
    return str(value) if value else None


__all__ = ["load_local_secrets", "secret_or_env", "DEFAULT_SECRETS_FILENAME"]
