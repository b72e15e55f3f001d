"""Configuration constants for the OpenAI vulnerability classifier."""

from __future__ import annotations

import os
from typing import Tuple

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-5-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "120"))
RATE_LIMIT_WAIT_SEC = int(os.getenv("OPENAI_RATE_LIMIT_WAIT_SEC", str(15 * 60)))

# The OpenAI API only signals throttling with 429.
OPENAI_RATE_LIMIT_STATUSES: Tuple[int, ...] = (429,)

SYSTEM_PROMPT = (
    "Analyze code review discussions for security vulnerability findings. "
    "Return JSON only."
)

USER_PROMPT_TEMPLATE = """Analyze this code review conversation for security vulnerability findings.

Conversation:
{conversation}

Return JSON:
{{
  "relevant_discussion": "excerpt if vulnerability found, else empty string",
  "reason": "explanation in Japanese if found, else empty string"
}}"""

__all__ = [
    "OPENAI_MODEL",
    "OPENAI_TIMEOUT",
    "RATE_LIMIT_WAIT_SEC",
    "OPENAI_RATE_LIMIT_STATUSES",
    "SYSTEM_PROMPT",
    "USER_PROMPT_TEMPLATE",
]
