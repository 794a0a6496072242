"""Classifier output consumed by the router."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class QuestionCategory(str, Enum):
    """Category of a utility billing customer question."""
    BILLING_FAQ = "BillingFAQ"
    ACCOUNT_DATA = "AccountData"
    SERVICE_REQUEST = "ServiceRequest"
    OUT_OF_SCOPE = "OutOfScope"
    HUMAN_REQUESTED = "HumanRequested"


class Classification(BaseModel):
    """Immutable classification result for a single message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: QuestionCategory
    confidence: float = Field(ge=0.0, le=1.0)
    requires_auth: bool = Field(default=False, alias="requiresAuth")
    question_type: Optional[str] = Field(default=None, alias="questionType")
    reasoning: str = ""
