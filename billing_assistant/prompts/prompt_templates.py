"""Customer-facing message templates used by the router."""

from typing import Optional

from billing_assistant.config import settings

ASK_FOR_IDENTIFIER = (
    "I can help with that. First I need to verify your identity. "
    "What's the phone number, email, or account number on the account?"
)

LOOKUP_MISS = (
    "I couldn't find an account with that information. "
    "Please try the phone number, email, or account number on the account."
)

CLARIFICATION = (
    "I'm not sure I understood. I can help with billing questions, payments, "
    "usage, and your account. Could you rephrase that?"
)

HANDOFF_FAILED = (
    "I'm sorry, something went wrong on our side. "
    "Please call {support_line} and a representative will help you."
)

HANDOFF_CANCELLED = "No problem, I've cancelled the request for a representative. How else can I help?"

AUTH_CANCELLED = "No problem, I've set that aside. What else can I help you with?"


def build_factor_prompt(customer_name: Optional[str]) -> str:
    name = f", {customer_name.split()[0]}" if customer_name else ""
    return (
        f"Thanks{name}. To verify your identity, please tell me the last four "
        "digits of your SSN or your date of birth."
    )


def build_retry_prompt(remaining: int) -> str:
    plural = "" if remaining == 1 else "s"
    return (
        f"That didn't match our records. You have {remaining} attempt{plural} remaining. "
        "Please try the last four digits of your SSN or your date of birth."
    )


def build_another_factor_prompt(factors_needed: int) -> str:
    return (
        f"Thanks, that's verified. I need {factors_needed} more piece of information: "
        "the last four digits of your SSN or your date of birth."
    )


def build_verified_prompt(customer_name: Optional[str]) -> str:
    return f"Thank you{', ' + customer_name if customer_name else ''}, you're verified."


def build_lockout_message(ticket_id: str) -> str:
    return (
        "For your security I can't continue verification after too many failed "
        f"attempts. I've connected you with a representative (ticket {ticket_id})."
    )


def build_handoff_message(ticket_id: str, department: Optional[str] = None) -> str:
    where = f" in {department}" if department else ""
    return (
        f"I've requested a representative{where} for you. Your ticket number is "
        f"{ticket_id}. Please stay here and they'll join shortly."
    )


def build_handoff_timeout_message(ticket_id: str) -> str:
    sla = settings.business.callback_sla_minutes
    return (
        f"A representative hasn't responded yet. Your ticket {ticket_id} is still in "
        f"the queue. Keep waiting here, or expect a callback within {sla} minutes."
    )


def build_agent_message(agent_name: Optional[str], message: str) -> str:
    return f"{agent_name}: {message}" if agent_name else message


def build_handoff_failed_message() -> str:
    return HANDOFF_FAILED.format(support_line=settings.business.support_line)
