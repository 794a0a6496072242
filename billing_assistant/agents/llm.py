"""Shared plumbing for providers backed by an OpenAI-compatible chat client."""

import logging
import re
from typing import Any, Optional

from billing_assistant.config import ModelConfig, settings
from billing_assistant.errors import ProviderError

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_json(text: str) -> str:
    """Strip a markdown code fence around a JSON reply, if present."""
    match = _FENCED_JSON.search(text)
    return match.group(1).strip() if match else text.strip()


def create_client(api_key: Optional[str] = None) -> Any:
    """Build an ``AsyncOpenAI`` client from the environment."""
    from openai import AsyncOpenAI

    return AsyncOpenAI(api_key=api_key)


class JSONChatProvider:
    """Base for providers that send one system + user turn and expect JSON back."""

    def __init__(self, client: Any, config: Optional[ModelConfig] = None) -> None:
        self._client = client
        self._config = config or settings.model

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._config.llm_model,
            temperature=self._config.llm_temperature,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError("Model returned an empty reply")
        return extract_json(content)
