from billing_assistant.conversation.auth_state_machine import (
    AnonymousFlow,
    AuthenticatedFlow,
    Factor,
    LockedOutFlow,
    VerificationOutcome,
    VerifyingFlow,
    flow_for,
)
from billing_assistant.conversation.handoff_manager import HandoffTicketManager
from billing_assistant.conversation.router import ConversationRouter
from billing_assistant.conversation.session_manager import SessionManager
from billing_assistant.conversation.session_store import InMemorySessionStore, SqliteSessionStore

__all__ = [
    "AnonymousFlow",
    "VerifyingFlow",
    "AuthenticatedFlow",
    "LockedOutFlow",
    "Factor",
    "VerificationOutcome",
    "flow_for",
    "HandoffTicketManager",
    "ConversationRouter",
    "SessionManager",
    "InMemorySessionStore",
    "SqliteSessionStore",
]
