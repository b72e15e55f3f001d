"""OpenAI-backed classifier flagging security-relevant review discussions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

from openai import OpenAI

from .config import OPENAI_MODEL, OPENAI_TIMEOUT, SYSTEM_PROMPT, USER_PROMPT_TEMPLATE


class ClassificationError(RuntimeError):
    """The model answered, but not with the expected JSON verdict."""


@dataclass(frozen=True)
class Verdict:
    relevant_discussion: str = ""
    reason: str = ""

    @property
    def is_relevant(self) -> bool:
        return bool(self.relevant_discussion.strip())

    def to_record(self, pr_number: int) -> Dict[str, Any]:
        """Row written to the JSONL output."""
        return {"pr": pr_number, **asdict(self)}


def build_prompt(conversation: str) -> str:
    return USER_PROMPT_TEMPLATE.format(conversation=conversation)


def parse_verdict(content: Optional[str]) -> Verdict:
    if not content:
        raise ClassificationError("empty content in response")
    try:
        data = json.loads(content)
    except ValueError as exc:
        raise ClassificationError("failed to parse JSON response") from exc
    if not isinstance(data, dict):
        raise ClassificationError("response JSON is not an object")
    return Verdict(
        relevant_discussion=str(data.get("relevant_discussion") or ""),
        reason=str(data.get("reason") or ""),
    )


class VulnerabilityClassifier:
    """Single chat completion per conversation; no retries inside.

    Rate limits surface as ``openai.RateLimitError`` for the batch driver to
    handle.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = OPENAI_MODEL,
        client: Optional[OpenAI] = None,
        timeout: float = OPENAI_TIMEOUT,
    ) -> None:
        self.model = model
        self._client = client or OpenAI(api_key=api_key, max_retries=0, timeout=timeout)

    def classify(self, conversation: Union[str, bytes]) -> Verdict:
        if isinstance(conversation, bytes):
            conversation = conversation.decode("utf-8")
        completion = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(conversation)},
            ],
            response_format={"type": "json_object"},
        )
        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise ClassificationError("no choices in response")
        return parse_verdict(choices[0].message.content)


__all__ = [
    "ClassificationError",
    "Verdict",
    "build_prompt",
    "parse_verdict",
    "VulnerabilityClassifier",
]
