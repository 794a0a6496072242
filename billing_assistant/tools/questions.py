"""Catalog of known customer questions, used to suggest follow-ups.

Every entry maps a question id (the same ids the FAQ knowledge base and
the account-data lookups use) to a description, a ready-to-send wording
and whether answering it needs a verified customer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from billing_assistant.schemas.classification_schema import QuestionCategory
from billing_assistant.tools.account_data import match_account_question
from billing_assistant.tools.faq import match_topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownQuestion:
    question_id: str
    description: str
    suggested_question: str
    requires_auth: bool = False


_CATALOG_ENTRIES = [
    # Account data: only for verified customers
    KnownQuestion("balance-inquiry", "Current amount owed",
                  "How much do I owe right now?", requires_auth=True),
    KnownQuestion("payment-status", "Whether the last payment was received",
                  "Did you receive my last payment?", requires_auth=True),
    KnownQuestion("due-date", "When the current bill is due",
                  "When is my bill due?", requires_auth=True),
    KnownQuestion("usage-analysis", "Why usage went up or down",
                  "Why is my usage higher this month?", requires_auth=True),
    KnownQuestion("autopay-status", "Whether the account is enrolled in AutoPay",
                  "Am I enrolled in AutoPay?", requires_auth=True),
    KnownQuestion("meter-read", "Whether the latest meter read was actual or estimated",
                  "Was my last meter read estimated?", requires_auth=True),
    KnownQuestion("bill-details", "Breakdown of the latest bill",
                  "Can you break down my latest bill?", requires_auth=True),
    KnownQuestion("billing-history", "Recent bills with usage and amounts",
                  "Can you show my billing history?", requires_auth=True),
    # General knowledge base
    KnownQuestion("payment-options", "Ways to pay a bill",
                  "What are the ways to pay my bill?"),
    KnownQuestion("autopay-info", "How AutoPay works and how to enroll",
                  "How do I enroll in AutoPay?"),
    KnownQuestion("late-fees", "Late fees and disconnection policy",
                  "What happens if I pay late?"),
    KnownQuestion("payment-arrangements", "Payment arrangements and extensions",
                  "Can I get a payment arrangement?"),
    KnownQuestion("estimated-reads", "Why a meter read can be estimated",
                  "What is an estimated meter read?"),
    KnownQuestion("high-bill", "Common reasons a bill goes up",
                  "What can make a bill go up?"),
    KnownQuestion("budget-billing", "Budget billing and how the monthly amount is set",
                  "How does budget billing work?"),
    KnownQuestion("read-bill", "How to read the charges on a bill",
                  "How do I read my bill?"),
    KnownQuestion("start-stop-service", "Starting, stopping or moving service",
                  "How do I start service at a new address?"),
]

QUESTION_CATALOG: dict[str, KnownQuestion] = {q.question_id: q for q in _CATALOG_ENTRIES}

# Follow-ups worth offering after each question, best first.
RELATED_QUESTIONS: dict[str, list[str]] = {
    "balance-inquiry": ["due-date", "payment-options"],
    "payment-status": ["balance-inquiry", "autopay-status"],
    "due-date": ["payment-options", "autopay-info"],
    "usage-analysis": ["high-bill", "budget-billing"],
    "autopay-status": ["autopay-info", "due-date"],
    "meter-read": ["estimated-reads", "usage-analysis"],
    "bill-details": ["read-bill", "billing-history"],
    "billing-history": ["usage-analysis", "budget-billing"],
    "payment-options": ["autopay-info", "balance-inquiry"],
    "autopay-info": ["autopay-status", "payment-options"],
    "late-fees": ["payment-arrangements", "due-date"],
    "payment-arrangements": ["balance-inquiry", "late-fees"],
    "estimated-reads": ["meter-read", "read-bill"],
    "high-bill": ["usage-analysis", "budget-billing"],
    "budget-billing": ["billing-history", "high-bill"],
    "read-bill": ["bill-details", "estimated-reads"],
    "start-stop-service": ["payment-options", "read-bill"],
}


def get_question(question_id: str) -> Optional[KnownQuestion]:
    return QUESTION_CATALOG.get(question_id.lower().strip())


def identify_question(text: str, category: QuestionCategory) -> Optional[str]:
    """Map a customer message to a catalog id for the given category."""
    if category == QuestionCategory.ACCOUNT_DATA:
        return match_account_question(text)
    if category == QuestionCategory.BILLING_FAQ:
        return match_topic(text)
    return None


def related_questions(question_id: str) -> list[KnownQuestion]:
    return [QUESTION_CATALOG[qid] for qid in RELATED_QUESTIONS.get(question_id, [])
            if qid in QUESTION_CATALOG]
