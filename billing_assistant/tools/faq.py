"""General billing knowledge base: topics, answers, and query matching."""

import logging
from typing import Optional

from billing_assistant.config import settings

logger = logging.getLogger(__name__)

_support = settings.business.support_line

FAQ_TOPICS: dict[str, dict] = {
    "payment-options": {
        "title": "Ways to Pay",
        "answer": (
            "You can pay online with a card or bank account, by phone at "
            f"{_support}, by mail with the stub from your bill, or in person at "
            "any authorized payment location. Online and phone payments post "
            "within one business day."
        ),
    },
    "autopay-info": {
        "title": "AutoPay",
        "answer": (
            "AutoPay pays your bill from a bank account or card on the due date each "
            "month. You can enroll online under Billing > AutoPay. Enrollment takes "
            "effect on your next billing cycle."
        ),
    },
    "late-fees": {
        "title": "Late Payments",
        "answer": (
            "Payments received after the due date incur a late fee of 1.5% of the "
            "past-due balance. Accounts more than 30 days past due may receive a "
            "disconnection notice."
        ),
    },
    "payment-arrangements": {
        "title": "Payment Arrangements and Extensions",
        "answer": (
            "If you can't pay in full, you may qualify for a payment arrangement that "
            "spreads your balance over up to 6 months, or a one-time extension of up "
            "to 14 days. Eligibility depends on your account history, so a "
            "representative will need to set it up."
        ),
    },
    "estimated-reads": {
        "title": "Estimated Meter Reads",
        "answer": (
            "When we can't access your meter, we estimate usage from your history. "
            "An estimated bill is marked with an E next to the read. The next actual "
            "read corrects any difference automatically."
        ),
    },
    "high-bill": {
        "title": "Why Bills Change",
        "answer": (
            "Bills usually rise with weather: heating and cooling drive most usage. "
            "More days in the billing period, new appliances, more people at home or "
            "an estimated read can also raise a bill."
        ),
    },
    "budget-billing": {
        "title": "Budget Billing",
        "answer": (
            "Budget billing averages your last 12 months of usage so you pay about the "
            "same amount every month. The plan is reviewed twice a year."
        ),
    },
    "read-bill": {
        "title": "Reading Your Bill",
        "answer": (
            "Your bill shows the billing period, meter reads, total kWh used, the rate "
            "code, charges and taxes, the amount due and the due date. The usage chart "
            "compares the last 13 months."
        ),
    },
    "start-stop-service": {
        "title": "Starting or Stopping Service",
        "answer": (
            "To start, stop or transfer service, request it at least 3 business days "
            "ahead online or through a representative. A final bill is sent to your "
            "forwarding address."
        ),
    },
}

TOPIC_ALIASES: dict[str, str] = {
    "how can i pay": "payment-options", "how do i pay": "payment-options",
    "pay my bill": "payment-options", "payment options": "payment-options",
    "pay online": "payment-options", "pay by phone": "payment-options",
    "autopay": "autopay-info", "auto pay": "autopay-info", "automatic payment": "autopay-info",
    "late fee": "late-fees", "pay late": "late-fees", "miss a payment": "late-fees",
    "disconnect": "late-fees",
    "payment arrangement": "payment-arrangements", "payment plan": "payment-arrangements",
    "extension": "payment-arrangements",
    "estimated": "estimated-reads", "estimate": "estimated-reads",
    "bill so high": "high-bill", "bill higher": "high-bill", "bill go up": "high-bill",
    "high bill": "high-bill",
    "budget billing": "budget-billing", "budget plan": "budget-billing",
    "read my bill": "read-bill", "understand my bill": "read-bill", "rate code": "read-bill",
    "start service": "start-stop-service", "stop service": "start-stop-service",
    "moving": "start-stop-service", "transfer service": "start-stop-service",
}


def get_topic(topic_id: str) -> Optional[dict]:
    """Get a knowledge-base entry by id."""
    info = FAQ_TOPICS.get(topic_id.lower().strip())
    return {"id": topic_id, **info} if info else None


def match_topic(query: str) -> Optional[str]:
    """Match a customer question to a topic id. Returns None if no match."""
    normalized = query.lower().strip()
    for alias, topic_id in TOPIC_ALIASES.items():
        if alias in normalized:
            return topic_id
    for tid, info in FAQ_TOPICS.items():
        if info["title"].lower() in normalized:
            return tid
    return None
