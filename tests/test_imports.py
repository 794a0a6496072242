"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

import pytest


class TestSchemaImports:
    def test_import_session_schema(self):
        from billing_assistant.schemas.session_schema import (
            AuthState, ConversationSession, HandoffState, Role,
        )
        session = ConversationSession(session_id="x")
        assert session.auth_state == AuthState.ANONYMOUS
        assert session.handoff_state == HandoffState.NONE
        assert Role.AGENT == "agent"

    def test_import_classification_schema(self):
        from billing_assistant.schemas.classification_schema import Classification, QuestionCategory
        result = Classification.model_validate(
            {"category": "BillingFAQ", "confidence": 0.5, "requiresAuth": False}
        )
        assert result.category == QuestionCategory.BILLING_FAQ

    def test_import_handoff_and_response_schemas(self):
        from billing_assistant.schemas.handoff_schema import HandoffTicket, TicketStatus
        from billing_assistant.schemas.response_schema import ChatResponse, RequiredAction
        assert TicketStatus.PENDING == "pending"
        assert ChatResponse(message="hi").required_action == RequiredAction.NONE
        assert HandoffTicket is not None

    def test_import_customer_schema(self):
        from billing_assistant.schemas.customer_schema import CustomerRecord
        assert "last_four_ssn" in CustomerRecord.model_fields


class TestConversationImports:
    def test_package_reexports(self):
        from billing_assistant.conversation import (
            AnonymousFlow, ConversationRouter, HandoffTicketManager,
            InMemorySessionStore, SessionManager, SqliteSessionStore, flow_for,
        )
        assert ConversationRouter is not None
        assert AnonymousFlow is not None

    def test_import_session_round_trip(self):
        from billing_assistant.schemas.session_schema import ConversationSession, Role
        session = ConversationSession(session_id="x")
        session.add_message(Role.USER, "hi")
        restored = ConversationSession.from_json(session.to_json())
        assert restored.conversation_history[0].content == "hi"


class TestAgentImports:
    def test_agents_package_reexports(self):
        from billing_assistant.agents import (
            CatalogNextBestAction, KeywordClassifier, LLMClassifier, LLMNextBestAction,
            LLMSummarizer, StaticFAQResponder, TemplateSummarizer, ToolAccountDataResponder,
        )
        assert KeywordClassifier is not None
        assert CatalogNextBestAction is not None


class TestProviderRegistry:
    def test_has_builtin_providers(self):
        from billing_assistant.agents.registry import ProviderRegistry
        names = ProviderRegistry().names()
        for name in ("keyword_classifier", "llm_classifier", "static_faq", "account_data",
                     "template_summarizer", "llm_summarizer", "catalog_next_best_action",
                     "llm_next_best_action"):
            assert name in names

    def test_create_provider(self):
        from billing_assistant.agents.classifier import KeywordClassifier
        from billing_assistant.agents.registry import ProviderRegistry
        assert isinstance(ProviderRegistry().create("keyword_classifier"), KeywordClassifier)

    def test_create_unknown_provider(self):
        from billing_assistant.agents.registry import ProviderRegistry
        with pytest.raises(KeyError, match="not registered"):
            ProviderRegistry().create("does_not_exist")

    def test_register_stays_on_instance(self):
        from billing_assistant.agents.registry import BUILTIN_PROVIDERS, ProviderRegistry
        registry = ProviderRegistry()
        registry.register("echo_faq", lambda: "echo")
        assert registry.create("echo_faq") == "echo"
        assert "echo_faq" not in ProviderRegistry().names()
        assert "echo_faq" not in BUILTIN_PROVIDERS

    def test_builtin_table_is_read_only(self):
        from billing_assistant.agents.registry import BUILTIN_PROVIDERS
        with pytest.raises(TypeError):
            BUILTIN_PROVIDERS["echo_faq"] = lambda: "echo"  # type: ignore[index]

    def test_custom_table(self):
        from billing_assistant.agents.registry import ProviderRegistry
        registry = ProviderRegistry({"echo_faq": lambda: "echo"})
        assert registry.names() == ["echo_faq"]


class TestToolImports:
    def test_import_tools(self):
        from billing_assistant.tools.account_data import get_account_balance
        from billing_assistant.tools.customer import InMemoryIdentityStore, mock_customers
        from billing_assistant.tools.faq import FAQ_TOPICS
        assert len(mock_customers()) == 3
        assert len(FAQ_TOPICS) >= 5
        assert callable(get_account_balance)
        assert InMemoryIdentityStore().find_by_identifier("555-5678").name == "Maria Garcia"


class TestLoggingContext:
    def test_session_id_on_records(self, caplog):
        import logging

        from billing_assistant.logging_context import (
            get_session_id, get_session_logger, set_session_id,
        )
        set_session_id("sess-abc123")
        logger = get_session_logger("billing_assistant.test")
        with caplog.at_level(logging.INFO, logger="billing_assistant.test"):
            logger.info("Processing message")
        assert get_session_id() == "sess-abc123"
        assert caplog.records[-1].session_id == "sess-abc123"

    def test_filter_attached_once(self):
        from billing_assistant.logging_context import SessionIdFilter, get_session_logger
        logger = get_session_logger("billing_assistant.test.once")
        get_session_logger("billing_assistant.test.once")
        assert sum(isinstance(f, SessionIdFilter) for f in logger.filters) == 1

    def test_root_handler_prints_session_id(self):
        import io
        import logging

        from billing_assistant.config import LOG_FORMAT
        from billing_assistant.logging_context import session_log_handler, set_session_id

        stream = io.StringIO()
        handler = session_log_handler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        # A plain module logger: the session id comes from the handler's filter
        logger = logging.getLogger("billing_assistant.test.plain")
        logger.addHandler(handler)
        try:
            set_session_id("sess-def456")
            logger.warning("Saved session")
        finally:
            logger.removeHandler(handler)
        assert "[sess-def456] WARNING: Saved session" in stream.getvalue()
