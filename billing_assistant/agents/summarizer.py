"""
Handoff summarizers.

Produce the ``HandoffSummary`` a human agent reads when picking up a
ticket. ``TemplateSummarizer`` works offline; ``LLMSummarizer`` asks a
chat model for a richer summary.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from billing_assistant.agents.llm import JSONChatProvider
from billing_assistant.config import HandoffConfig, ModelConfig, settings
from billing_assistant.errors import ProviderError
from billing_assistant.prompts.system_prompts import SUMMARIZER_SYSTEM_PROMPT, build_summary_prompt
from billing_assistant.schemas.handoff_schema import HandoffSummary

logger = logging.getLogger(__name__)

DEPARTMENT_KEYWORDS: list[tuple[str, str]] = [
    ("payment arrangement", "Collections"),
    ("payment plan", "Collections"),
    ("extension", "Collections"),
    ("past due", "Collections"),
    ("dispute", "Billing"),
    ("refund", "Billing"),
    ("bill", "Billing"),
    ("start", "Field Services"),
    ("stop", "Field Services"),
    ("meter", "Field Services"),
]


def suggest_department(text: str, default: str) -> str:
    lower = text.lower()
    for keyword, department in DEPARTMENT_KEYWORDS:
        if keyword in lower:
            return department
    return default


class TemplateSummarizer:
    """Deterministic summary built from the escalation inputs."""

    def __init__(self, config: Optional[HandoffConfig] = None) -> None:
        self._config = config or settings.handoff

    async def summarize(
        self, conversation_text: str, escalation_reason: str, current_question: str
    ) -> HandoffSummary:
        turns = [line for line in conversation_text.splitlines() if line.strip()]
        customer_turns = sum(1 for line in turns if line.startswith("user:"))
        department = suggest_department(current_question, self._config.default_department)
        return HandoffSummary(
            summary=(
                f"Customer asked: \"{current_question}\". "
                f"Escalated to a human because of {escalation_reason}."
            ),
            escalation_reason=escalation_reason,
            original_question=current_question,
            suggested_department=department,
            key_facts=[
                f"{customer_turns} customer message(s) before escalation",
                f"Escalation reason: {escalation_reason}",
            ],
        )


class LLMSummarizer(JSONChatProvider):
    """Summarizer backed by a chat model returning JSON."""

    def __init__(
        self,
        client,
        config: Optional[ModelConfig] = None,
        handoff_config: Optional[HandoffConfig] = None,
    ) -> None:
        super().__init__(client, config)
        self._handoff = handoff_config or settings.handoff

    async def summarize(
        self, conversation_text: str, escalation_reason: str, current_question: str
    ) -> HandoffSummary:
        logger.debug("Summarizing conversation for handoff. Reason: %s", escalation_reason)
        raw = await self._complete_json(
            SUMMARIZER_SYSTEM_PROMPT,
            build_summary_prompt(conversation_text, escalation_reason, current_question),
        )
        try:
            summary = HandoffSummary.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Failed to parse summarizer response: %s", exc)
            raise ProviderError(f"Unparseable summary: {raw!r}") from exc

        if not summary.suggested_department:
            summary = summary.model_copy(
                update={"suggested_department": self._handoff.default_department}
            )
        return summary
