"""Per-conversation state and its serialized form."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthState(str, Enum):
    """Where the conversation is in the in-band verification lifecycle."""
    ANONYMOUS = "anonymous"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    LOCKED_OUT = "locked_out"


class HandoffState(str, Enum):
    NONE = "none"
    WAITING_FOR_HUMAN = "waiting_for_human"
    HUMAN_CONVERSATION_ACTIVE = "human_conversation_active"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    AGENT = "agent"
    SYSTEM = "system"


class Message(BaseModel):
    """A single entry in a conversation or ticket history."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class AuthProgress(BaseModel):
    """Verification progress embedded in a session."""

    auth_state: AuthState = AuthState.ANONYMOUS
    failed_attempts: int = Field(default=0, ge=0)
    verified_factors: list[str] = Field(default_factory=list)
    identifying_info: Optional[str] = None


class ConversationSession(BaseModel):
    """
    Everything needed to resume a conversation after a process restart.

    Owned by the SessionManager. Only the router and the authentication
    and handoff flows mutate it, always under the per-session lock.
    """

    session_id: str
    auth: AuthProgress = Field(default_factory=AuthProgress)
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    authenticated_at: Optional[datetime] = None
    session_expiry: Optional[datetime] = None
    pending_query: Optional[str] = None
    conversation_history: list[Message] = Field(default_factory=list)
    handoff_ticket_id: Optional[str] = None
    handoff_state: HandoffState = HandoffState.NONE
    created_at: datetime = Field(default_factory=utcnow)
    last_interaction: datetime = Field(default_factory=utcnow)

    @property
    def auth_state(self) -> AuthState:
        return self.auth.auth_state

    def is_authenticated(self, now: Optional[datetime] = None) -> bool:
        """True if authenticated and the verification window has not lapsed."""
        now = now or utcnow()
        return (
            self.auth.auth_state == AuthState.AUTHENTICATED
            and self.session_expiry is not None
            and self.session_expiry > now
        )

    def in_handoff(self) -> bool:
        return self.handoff_state in (
            HandoffState.WAITING_FOR_HUMAN,
            HandoffState.HUMAN_CONVERSATION_ACTIVE,
        )

    def add_message(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        self.conversation_history.append(message)
        return message

    def recent_history(self, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self.conversation_history[-limit:])

    def transcript(self) -> str:
        """Render the history as ``role: content`` lines for summarization."""
        return "\n".join(
            f"{m.role.value}: {m.content}" for m in self.conversation_history
        )

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, payload: str) -> "ConversationSession":
        return cls.model_validate_json(payload)
