"""
Account-data responder: answers questions about a verified customer's account.

The router only calls this with the id of an authenticated customer; the
responder itself just resolves the account and picks the right lookup.
A question that matches none of the lookups comes back as not found.
"""

import logging
from datetime import date
from typing import Callable, Optional

from billing_assistant.errors import ProviderError
from billing_assistant.schemas.response_schema import ProviderAnswer
from billing_assistant.tools import account_data
from billing_assistant.tools.customer import InMemoryIdentityStore

logger = logging.getLogger(__name__)

NO_ANSWER = "I can't look that up from your account details."


class ToolAccountDataResponder:
    """Answers from the account-data tools over the identity store."""

    def __init__(
        self,
        identity_store: InMemoryIdentityStore,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = identity_store
        self._today = today

    async def answer(self, message: str, customer_id: str) -> ProviderAnswer:
        customer = self._store.get_by_account(customer_id)
        if customer is None:
            raise ProviderError(f"No account {customer_id}")

        question_type = account_data.match_account_question(message)
        if question_type is None:
            logger.info("No account lookup matches the question for %s", customer_id)
            return ProviderAnswer(text=NO_ANSWER, found=False)

        logger.info("Account question %s for %s", question_type, customer_id)
        return ProviderAnswer(text=self._lookup(question_type, customer))

    def _lookup(self, question_type: str, customer) -> str:
        today = self._today()
        if question_type == "payment-status":
            return account_data.get_payment_status(customer, today)["message"]
        if question_type == "due-date":
            return account_data.get_due_date(customer, today)["message"]
        if question_type == "usage-analysis":
            return account_data.get_usage_analysis(customer)["message"]
        if question_type == "autopay-status":
            return account_data.get_autopay_status(customer)["message"]
        if question_type == "meter-read":
            return account_data.get_meter_read_type(customer)["message"]
        if question_type == "bill-details":
            details: Optional[dict] = account_data.get_bill_details(customer)
            return details["message"] if details else "No billing history available."
        if question_type == "billing-history":
            bills = account_data.get_billing_history(customer)
            if not bills:
                return "No billing history available."
            lines = [f"{b['billing_period']}: {b['formatted_amount']} ({b['kwh_usage']} kWh)"
                     for b in bills]
            return "Your recent bills: " + "; ".join(lines) + "."
        return account_data.get_account_balance(customer, today)["message"]
