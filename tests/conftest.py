"""Shared test fixtures and helpers."""

import asyncio
import dataclasses
from datetime import datetime, timedelta
from typing import Optional, Sequence

import pytest

from billing_assistant.agents.account_agent import ToolAccountDataResponder
from billing_assistant.agents.classifier import KeywordClassifier
from billing_assistant.agents.faq_agent import StaticFAQResponder
from billing_assistant.agents.next_best_action import CatalogNextBestAction
from billing_assistant.agents.summarizer import TemplateSummarizer
from billing_assistant.config import (
    AppConfig,
    AuthConfig,
    HandoffConfig,
    RouterConfig,
    SessionConfig,
    settings,
)
from billing_assistant.conversation.handoff_manager import HandoffTicketManager
from billing_assistant.conversation.router import ConversationRouter
from billing_assistant.conversation.session_manager import SessionManager
from billing_assistant.conversation.session_store import InMemorySessionStore
from billing_assistant.schemas.classification_schema import Classification, QuestionCategory
from billing_assistant.schemas.response_schema import ProviderAnswer
from billing_assistant.schemas.session_schema import ConversationSession, Message, utcnow
from billing_assistant.tools.customer import InMemoryIdentityStore


class FakeClock:
    """Manually advanced clock injected wherever code asks for 'now'."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class FixedClassifier:
    """Returns the same classification for every message and records calls."""

    def __init__(self, category: QuestionCategory, confidence: float = 0.9) -> None:
        self.classification = Classification(category=category, confidence=confidence)
        self.calls: list[tuple[str, list[Message]]] = []

    async def classify(self, message: str, recent_history: Sequence[Message]) -> Classification:
        self.calls.append((message, list(recent_history)))
        return self.classification


class FailingProvider:
    """Raises from every provider method."""

    def __init__(self, error: Exception = RuntimeError("provider down")) -> None:
        self.error = error
        self.calls = 0

    async def classify(self, message, recent_history):
        self.calls += 1
        raise self.error

    async def answer(self, message, customer_id=None):
        self.calls += 1
        raise self.error

    async def summarize(self, conversation_text, escalation_reason, current_question):
        self.calls += 1
        raise self.error

    async def suggest(self, history, category, is_authenticated):
        self.calls += 1
        raise self.error


class RecordingAccountData:
    """Account-data responder that remembers who it answered for."""

    def __init__(self, found: bool = True) -> None:
        self.found = found
        self.calls: list[tuple[str, str]] = []

    async def answer(self, message: str, customer_id: str) -> ProviderAnswer:
        self.calls.append((message, customer_id))
        return ProviderAnswer(text=f"Answer for {customer_id}", found=self.found)


class SlowSuggester:
    """Follow-up suggester that never answers in time."""

    async def suggest(self, history, category, is_authenticated):
        await asyncio.sleep(1.0)
        return []


class SlowClassifier:
    """Classifier that yields to the loop and tracks overlapping calls."""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def classify(self, message: str, recent_history: Sequence[Message]) -> Classification:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return Classification(category=QuestionCategory.BILLING_FAQ, confidence=0.9)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_config():
    return AuthConfig(max_attempts=3, required_factors=1, session_minutes=30)


@pytest.fixture
def app_config(auth_config):
    return dataclasses.replace(
        settings,
        auth=auth_config,
        handoff=HandoffConfig(wait_seconds=0.05, default_department="Customer Service"),
        router=RouterConfig(
            low_confidence_threshold=0.3, history_window=6, suggestion_timeout_seconds=0.05
        ),
        session=SessionConfig(
            idle_ttl_minutes=60, sqlite_path=":memory:", sweep_interval_seconds=60
        ),
    )


@pytest.fixture
def identity_store():
    return InMemoryIdentityStore()


@pytest.fixture
def session():
    return ConversationSession(session_id="test-session")


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def session_manager(session_store, app_config, clock):
    return SessionManager(session_store, config=app_config.session, clock=clock)


@pytest.fixture
def ticket_manager(clock):
    return HandoffTicketManager(clock=clock)


def make_router(
    session_manager: SessionManager,
    ticket_manager: HandoffTicketManager,
    identity_store: InMemoryIdentityStore,
    config: AppConfig,
    clock: FakeClock,
    classifier=None,
    faq=None,
    account_data=None,
    summarizer=None,
    next_best_action=None,
) -> ConversationRouter:
    """Build a router with offline providers unless overrides are given."""
    return ConversationRouter(
        sessions=session_manager,
        tickets=ticket_manager,
        identity_store=identity_store,
        classifier=classifier or KeywordClassifier(),
        faq=faq or StaticFAQResponder(),
        account_data=account_data or ToolAccountDataResponder(identity_store),
        summarizer=summarizer or TemplateSummarizer(config.handoff),
        next_best_action=next_best_action or CatalogNextBestAction(),
        config=config,
        clock=clock,
    )


@pytest.fixture
def router(session_manager, ticket_manager, identity_store, app_config, clock):
    return make_router(session_manager, ticket_manager, identity_store, app_config, clock)
