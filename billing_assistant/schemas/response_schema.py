"""Router output handed back to the transport layer."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_assistant.schemas.classification_schema import QuestionCategory
from billing_assistant.schemas.session_schema import Role


class RequiredAction(str, Enum):
    """Follow-up signal the transport must act on after a response."""
    NONE = "none"
    AUTHENTICATION_IN_PROGRESS = "authentication_in_progress"
    AUTHENTICATION_FAILED = "authentication_failed"
    CLARIFICATION_NEEDED = "clarification_needed"
    HUMAN_HANDOFF_NEEDED = "human_handoff_needed"
    HUMAN_CONVERSATION_ACTIVE = "human_conversation_active"
    HANDOFF_TIMEOUT = "handoff_timeout"
    HANDOFF_RESOLVED = "handoff_resolved"
    HANDOFF_CANCELLED = "handoff_cancelled"
    TRANSFER_TO_SPECIALIST = "transfer_to_specialist"
    CALLBACK_SCHEDULED = "callback_scheduled"


class ProviderAnswer(BaseModel):
    """What an FAQ or account-data responder came back with.

    ``found`` is False when the question is outside what the responder
    can answer; the router hands such questions to a human.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    found: bool = True


class SuggestedAction(BaseModel):
    """A follow-up question offered to the customer after an answer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question_id: str = Field(alias="questionId")
    suggested_question: str = Field(alias="suggestedQuestion")


class ChatResponse(BaseModel):
    """Response from the router after processing one customer message.

    ``sender`` is AGENT when the text was written by a human agent.
    ``suggested_actions`` holds at most two follow-ups and is only filled
    for resolved FAQ and account-data answers.
    """

    message: str
    category: Optional[QuestionCategory] = None
    required_action: RequiredAction = RequiredAction.NONE
    ticket_id: Optional[str] = None
    sender: Role = Role.ASSISTANT
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)


class NextBestActionResult(BaseModel):
    """Model reply for follow-up suggestions."""

    suggestions: list[SuggestedAction] = Field(default_factory=list)
    reasoning: str = ""
