"""
Question classifiers.

``KeywordClassifier`` is an offline rule-based classifier good enough for
the console demo and tests. ``LLMClassifier`` asks a chat model for the
same structured ``Classification``.
"""

import logging
import re
from typing import Sequence

from pydantic import ValidationError

from billing_assistant.agents.llm import JSONChatProvider
from billing_assistant.errors import ProviderError
from billing_assistant.prompts.system_prompts import CLASSIFIER_SYSTEM_PROMPT
from billing_assistant.schemas.classification_schema import Classification, QuestionCategory
from billing_assistant.schemas.session_schema import Message
from billing_assistant.tools.account_data import is_personal, match_account_question
from billing_assistant.tools.faq import match_topic

logger = logging.getLogger(__name__)


class KeywordClassifier:
    """Rule-based classifier. The first matching rule wins."""

    HUMAN_KEYWORDS = [
        "representative", "real person", "speak to a person", "speak to someone",
        "talk to someone", "talk to a person", "human", "live agent", "an agent",
        "supervisor", "manager", "operator",
    ]

    SERVICE_REQUEST_KEYWORDS = [
        "set up a payment arrangement", "set up a payment plan", "need a payment plan",
        "need an extension", "request an extension", "dispute", "refund",
        "start my service", "stop my service", "transfer my service",
        "change my address", "update my address", "close my account",
    ]

    OUT_OF_SCOPE_TOPICS = [
        "weather", "sports", "recipe", "movie", "stock", "cryptocurrency",
        "medical", "legal advice", "dating", "politic", "joke",
    ]

    HOW_TO_PREFIXES = ("how ", "what is", "what are", "can i", "do you", "what happens")

    GREETINGS = ["hello", "hi", "hey", "good morning", "good afternoon", "thanks", "thank you"]

    async def classify(self, message: str, recent_history: Sequence[Message]) -> Classification:
        lower = message.lower().strip()

        for keyword in self.HUMAN_KEYWORDS:
            if keyword in lower:
                return Classification(
                    category=QuestionCategory.HUMAN_REQUESTED, confidence=0.95,
                    reasoning=f"Asked for a person: '{keyword}'",
                )

        for keyword in self.SERVICE_REQUEST_KEYWORDS:
            if keyword in lower:
                return Classification(
                    category=QuestionCategory.SERVICE_REQUEST, confidence=0.85,
                    reasoning=f"Needs staff action: '{keyword}'",
                )

        topic = match_topic(lower)
        if topic and lower.startswith(self.HOW_TO_PREFIXES):
            return Classification(
                category=QuestionCategory.BILLING_FAQ, confidence=0.9,
                question_type=topic, reasoning=f"How-to question on '{topic}'",
            )

        question_type = match_account_question(lower)
        if question_type and is_personal(lower):
            return Classification(
                category=QuestionCategory.ACCOUNT_DATA, confidence=0.9,
                requires_auth=True, question_type=question_type,
                reasoning="Question about the caller's own account",
            )

        if topic:
            return Classification(
                category=QuestionCategory.BILLING_FAQ, confidence=0.85,
                question_type=topic, reasoning=f"Matches knowledge-base topic '{topic}'",
            )

        if question_type:
            return Classification(
                category=QuestionCategory.BILLING_FAQ, confidence=0.6,
                question_type=question_type, reasoning="General billing question",
            )

        for topic in self.OUT_OF_SCOPE_TOPICS:
            if topic in lower:
                return Classification(
                    category=QuestionCategory.OUT_OF_SCOPE, confidence=0.9,
                    reasoning=f"Off-topic: '{topic}'",
                )

        if any(re.match(rf"{re.escape(g)}\b", lower) for g in self.GREETINGS):
            return Classification(
                category=QuestionCategory.OUT_OF_SCOPE, confidence=0.6,
                reasoning="Greeting or small talk",
            )

        return Classification(
            category=QuestionCategory.OUT_OF_SCOPE, confidence=0.2,
            reasoning="No rule matched",
        )


class LLMClassifier(JSONChatProvider):
    """Classifier backed by a chat model returning JSON."""

    async def classify(self, message: str, recent_history: Sequence[Message]) -> Classification:
        context = "\n".join(f"{m.role.value}: {m.content}" for m in recent_history)
        user_prompt = (
            f"RECENT CONVERSATION:\n{context or '(none)'}\n\nCUSTOMER MESSAGE:\n{message}"
        )
        raw = await self._complete_json(CLASSIFIER_SYSTEM_PROMPT, user_prompt)
        try:
            classification = Classification.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Failed to parse classifier response: %s", exc)
            raise ProviderError(f"Unparseable classification: {raw!r}") from exc

        logger.info(
            "Classification: %s, confidence %.2f",
            classification.category.value, classification.confidence,
        )
        return classification
