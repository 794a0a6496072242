"""
Next-best-action suggesters: follow-up questions offered after an answer.

Both implementations return at most two ``SuggestedAction`` items, only
from the question catalog, and never suggest a question that needs a
verified customer to someone who is not verified.
"""

import logging
from typing import Iterable, Sequence

from pydantic import ValidationError

from billing_assistant.agents.llm import JSONChatProvider
from billing_assistant.prompts.system_prompts import (
    NEXT_BEST_ACTION_SYSTEM_PROMPT,
    build_next_best_action_prompt,
)
from billing_assistant.schemas.classification_schema import QuestionCategory
from billing_assistant.schemas.response_schema import NextBestActionResult, SuggestedAction
from billing_assistant.schemas.session_schema import Message, Role
from billing_assistant.tools.questions import get_question, identify_question, related_questions

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 2
PROMPT_HISTORY_MESSAGES = 6


def filter_suggestions(
    suggestions: Iterable[SuggestedAction], is_authenticated: bool
) -> list[SuggestedAction]:
    """Keep catalog questions the customer may ask, deduplicated, capped at two."""
    kept: list[SuggestedAction] = []
    seen: set[str] = set()
    for suggestion in suggestions:
        question = get_question(suggestion.question_id)
        if question is None:
            logger.debug("Dropping unknown question id %s", suggestion.question_id)
            continue
        if question.requires_auth and not is_authenticated:
            logger.debug("Dropping %s for unverified customer", question.question_id)
            continue
        if question.question_id in seen:
            continue
        seen.add(question.question_id)
        kept.append(suggestion.model_copy(update={"question_id": question.question_id}))
        if len(kept) >= MAX_SUGGESTIONS:
            break
    return kept


class CatalogNextBestAction:
    """Offline suggester driven by the related-questions table."""

    async def suggest(
        self,
        history: Sequence[Message],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]:
        customer_turns = [m.content for m in history if m.role == Role.USER]

        current = None
        for text in reversed(customer_turns):
            current = identify_question(text, category)
            if current:
                break
        if current is None:
            return []

        asked = {
            qid
            for text in customer_turns
            for qid in (
                identify_question(text, QuestionCategory.ACCOUNT_DATA),
                identify_question(text, QuestionCategory.BILLING_FAQ),
            )
            if qid
        }
        candidates = [
            SuggestedAction(
                question_id=q.question_id, suggested_question=q.suggested_question
            )
            for q in related_questions(current)
            if q.question_id not in asked
        ]
        return filter_suggestions(candidates, is_authenticated)


class LLMNextBestAction(JSONChatProvider):
    """Suggester backed by a chat model returning JSON."""

    async def suggest(
        self,
        history: Sequence[Message],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]:
        prompt = build_next_best_action_prompt(
            list(history)[-PROMPT_HISTORY_MESSAGES:], category.value, is_authenticated
        )
        raw = await self._complete_json(NEXT_BEST_ACTION_SYSTEM_PROMPT, prompt)
        try:
            result = NextBestActionResult.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Failed to parse suggestion response: %s", exc)
            return []
        return filter_suggestions(result.suggestions, is_authenticated)
