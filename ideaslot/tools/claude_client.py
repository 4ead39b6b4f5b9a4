"""
Anthropic client for the two LLM calls the research pipeline makes.

- ``generate``: free-text answer, used for pain-point extraction.  The
  answer is handed to :mod:`ideaslot.agents.trend_parser` untouched.
- ``generate_structured``: one JSON object, used for sentiment tagging.

Both retry through ``@with_retry`` on API and decode errors only; this
policy is separate from the Reddit and Twitter schedulers.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
from anthropic import AsyncAnthropic

from ideaslot.utils import with_retry

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-opus-4-5-20251101"

EXTRACTION_SYSTEM = (
    "You analyze social media chatter for a product research team. "
    "Answer with exactly the format the user asks for."
)
JSON_SUFFIX = "\n\nRespond with a single JSON object and nothing else."

LLM_ERRORS = (anthropic.APIError, json.JSONDecodeError)

_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?(?P<body>.*?)\n?```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Unwrap a reply wrapped in one markdown fence; other text is only trimmed."""
    cleaned = text.strip()
    match = _FENCE.match(cleaned)
    return match.group("body").strip() if match else cleaned


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, usage: Any) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens

    def to_dict(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


class ClaudeClient:
    """
    Thin wrapper over ``AsyncAnthropic.messages.create``.

    Args:
        api_key: Anthropic key; defaults to ``ANTHROPIC_API_KEY``.
        model: Model identifier, normally ``Settings.llm_model``.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_MODEL) -> None:
        self.client = AsyncAnthropic(api_key=api_key or os.environ["ANTHROPIC_API_KEY"])
        self.model = model
        self.usage = TokenUsage()

    async def _complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        response = await self.client.messages.create(
            model=self.model,
            system=EXTRACTION_SYSTEM,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        self.usage.add(response.usage)
        logger.debug(
            "[LLM] %s used %d/%d tokens",
            self.model,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return "".join(block.text for block in response.content if block.type == "text")

    @with_retry(max_attempts=3, retryable_exceptions=LLM_ERRORS, operation_name="trend extraction")
    async def generate(self, prompt: str, max_tokens: int = 2048, temperature: float = 0.5) -> str:
        return await self._complete(prompt, max_tokens, temperature)

    @with_retry(max_attempts=3, retryable_exceptions=LLM_ERRORS, operation_name="structured generation")
    async def generate_structured(self, prompt: str, max_tokens: int = 512) -> Dict[str, Any]:
        """Return the reply parsed as JSON.

        Raises:
            RetryExhaustedError: When every attempt failed at the API or
                returned text that is not JSON.
        """
        text = await self._complete(prompt + JSON_SUFFIX, max_tokens, 0.0)
        return json.loads(strip_code_fences(text))

    @property
    def usage_stats(self) -> Dict[str, int]:
        return self.usage.to_dict()


def get_claude(api_key: Optional[str] = None, model: str = DEFAULT_MODEL) -> Optional[ClaudeClient]:
    """Build a client, or ``None`` when no key is configured (collectors then fall back)."""
    if not (api_key or os.environ.get("ANTHROPIC_API_KEY")):
        logger.warning("[LLM] ANTHROPIC_API_KEY not set; trend extraction will use fallbacks")
        return None
    return ClaudeClient(api_key=api_key, model=model)
