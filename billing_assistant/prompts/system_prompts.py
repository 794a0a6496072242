"""
Centralized system prompts for the LLM-backed providers.

Business-specific values are injected from configuration, not hardcoded.
Every prompt asks for a single JSON object so replies can be validated
with the pydantic schemas directly.
"""

from typing import Sequence

from billing_assistant.config import settings
from billing_assistant.schemas.session_schema import Message
from billing_assistant.tools.questions import QUESTION_CATALOG

_biz = settings.business

BUSINESS_CONTEXT = f"""
You work for {_biz.name}, an electric utility. Customers contact the
billing support line about bills, payments, usage and their accounts.
"""

CLASSIFIER_SYSTEM_PROMPT = f"""{BUSINESS_CONTEXT}
You are a utility billing customer support classifier.

Categories:
- BillingFAQ: General questions (no auth needed). Example: "How can I pay my bill?"
- AccountData: Questions needing this customer's data (auth required). Example: "What's my balance?"
- ServiceRequest: Complex requests needing action by staff. Example: "Set up a payment arrangement"
- OutOfScope: Not related to utility billing
- HumanRequested: Customer asks for a human representative

Known question types (use these IDs for questionType):
- balance-inquiry: current amount owed
- payment-status: whether a payment was received
- due-date: when the bill is due
- usage-analysis: why usage or the bill went up or down
- payment-options: how to pay
- autopay-info: enrolling in or checking AutoPay

RULES:
- Set confidence between 0.0 and 1.0.
- Use the recent conversation only to resolve references like "it" or "that bill".
- requiresAuth is true only for AccountData.

Respond with JSON only:
{{"category":"...","confidence":0.0,"requiresAuth":false,"questionType":"...","reasoning":"..."}}
"""

SUMMARIZER_SYSTEM_PROMPT = f"""{BUSINESS_CONTEXT}
You summarize customer support conversations for a human agent taking over.

RULES:
- Be concise. The agent should understand the situation in under a minute.
- Never include verification answers (SSN digits or date of birth).
- Suggest a department only if it is obvious: Billing, Collections,
  Customer Service or Field Services.

Respond with JSON only:
{{"summary":"...","escalationReason":"...","originalQuestion":"...","suggestedDepartment":"...","keyFacts":["..."]}}
"""


def build_summary_prompt(conversation: str, escalation_reason: str, current_question: str) -> str:
    """Build the user turn sent to the summarizer."""
    return f"""Summarize this customer support conversation for handoff to a human agent.

ESCALATION REASON: {escalation_reason}

CURRENT CUSTOMER REQUEST: {current_question}

CONVERSATION:
{conversation}

Help the human agent understand:
1. What the customer was trying to accomplish
2. What has been attempted or discussed so far
3. Any relevant account or context information shared
4. Why they're being transferred to a human"""


def _catalog_lines() -> str:
    lines = []
    for question in QUESTION_CATALOG.values():
        note = " [REQUIRES AUTH]" if question.requires_auth else ""
        lines.append(f"- {question.question_id}: {question.description}{note}")
    return "\n".join(lines)


NEXT_BEST_ACTION_SYSTEM_PROMPT = f"""{BUSINESS_CONTEXT}
After a customer's question is answered, you suggest 1-2 follow-up
questions they are likely to ask next.

RULES:
- Suggest questions that follow naturally from the conversation.
- Do not suggest questions the customer already asked.
- Prefer questions in the same category unless a related one fits better.
- Use a questionId EXACTLY as listed below.
- If the customer is NOT authenticated, only suggest questions without [REQUIRES AUTH].
- Phrase suggestedQuestion the way the customer would ask it.
- Return an empty list when nothing relevant fits. Never return more than 2.

VALID QUESTION IDS:
{_catalog_lines()}

Respond with JSON only:
{{"suggestions":[{{"questionId":"...","suggestedQuestion":"..."}}],"reasoning":"..."}}
"""


def build_next_best_action_prompt(
    history: Sequence[Message], category: str, is_authenticated: bool
) -> str:
    """Build the user turn sent to the follow-up suggester."""
    conversation = "\n".join(f"{m.role.value}: {m.content}" for m in history)
    return f"""Current category: {category}
Customer is authenticated: {is_authenticated}

RECENT CONVERSATION:
{conversation or '(none)'}

Suggest 1-2 follow-up questions the customer might want to ask next."""
