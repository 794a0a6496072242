"""
Narrow contracts the router uses to talk to answer providers.

Any object with the matching async method satisfies a contract; the
offline and LLM-backed implementations in this package are two choices.
"""

from typing import Protocol, Sequence

from billing_assistant.schemas.classification_schema import Classification, QuestionCategory
from billing_assistant.schemas.handoff_schema import HandoffSummary
from billing_assistant.schemas.response_schema import ProviderAnswer, SuggestedAction
from billing_assistant.schemas.session_schema import Message


class Classifier(Protocol):
    async def classify(self, message: str, recent_history: Sequence[Message]) -> Classification:
        ...


class FAQResponder(Protocol):
    async def answer(self, message: str) -> ProviderAnswer:
        ...


class AccountDataResponder(Protocol):
    async def answer(self, message: str, customer_id: str) -> ProviderAnswer:
        ...


class Summarizer(Protocol):
    async def summarize(
        self, conversation_text: str, escalation_reason: str, current_question: str
    ) -> HandoffSummary:
        ...


class NextBestActionProvider(Protocol):
    async def suggest(
        self,
        history: Sequence[Message],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]:
        ...
