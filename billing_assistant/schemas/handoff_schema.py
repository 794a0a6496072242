"""Human handoff tickets, agent responses and summaries."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_assistant.schemas.session_schema import Message, utcnow


class TicketStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ResolutionKind(str, Enum):
    """How a human agent closed out (or continued) a handoff."""
    RESOLVED = "resolved"
    CONTINUE_CONVERSATION = "continue_conversation"
    TRANSFER_TO_SPECIALIST = "transfer_to_specialist"
    SCHEDULE_CALLBACK = "schedule_callback"


class HandoffSummary(BaseModel):
    """Structured summary produced for the human agent."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    escalation_reason: str = Field(alias="escalationReason")
    original_question: str = Field(alias="originalQuestion")
    suggested_department: Optional[str] = Field(default=None, alias="suggestedDepartment")
    key_facts: list[str] = Field(default_factory=list, alias="keyFacts")


class AgentResponse(BaseModel):
    """A reply from a human agent, optionally carrying a resolution."""

    ticket_id: str
    message: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    resolution: Optional[ResolutionKind] = None
    created_at: datetime = Field(default_factory=utcnow)


class HandoffTicket(BaseModel):
    """A conversation escalated to the human queue."""

    ticket_id: str
    session_id: str
    summary: str
    escalation_reason: str
    suggested_department: Optional[str] = None
    status: TicketStatus = TicketStatus.PENDING
    assigned_agent_id: Optional[str] = None
    assigned_agent_name: Optional[str] = None
    user_context: dict[str, Any] = Field(default_factory=dict)
    history: list[Message] = Field(default_factory=list)
    resolution: Optional[ResolutionKind] = None
    resolution_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in (TicketStatus.PENDING, TicketStatus.ACTIVE)
