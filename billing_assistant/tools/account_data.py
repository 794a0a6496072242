"""Account data lookups for a verified customer: balance, payments, usage, bills."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from billing_assistant.schemas.customer_schema import CustomerRecord

logger = logging.getLogger(__name__)

READ_TYPE_DESCRIPTIONS: dict[str, str] = {
    "A": "Actual meter read",
    "E": "Estimated meter read",
}

# Checked in order; the first keyword found picks the question type.
ACCOUNT_QUESTION_KEYWORDS: list[tuple[str, str]] = [
    ("autopay", "autopay-status"),
    ("auto pay", "autopay-status"),
    ("meter", "meter-read"),
    ("estimated", "meter-read"),
    ("history", "billing-history"),
    ("past bills", "billing-history"),
    ("usage", "usage-analysis"),
    ("kwh", "usage-analysis"),
    ("so high", "usage-analysis"),
    ("higher", "usage-analysis"),
    ("receive my payment", "payment-status"),
    ("get my payment", "payment-status"),
    ("last payment", "payment-status"),
    ("payment", "payment-status"),
    ("due", "due-date"),
    ("balance", "balance-inquiry"),
    ("owe", "balance-inquiry"),
    ("bill", "bill-details"),
]

# Phrases that tie a question to the caller's own account.
PERSONAL_MARKERS = (
    "my ", "i owe", "do i", "did i", "did you get", "did you receive", "am i", "mine",
)


def match_account_question(query: str) -> Optional[str]:
    """Map an account question to a question type, or None."""
    normalized = query.lower()
    for keyword, question_type in ACCOUNT_QUESTION_KEYWORDS:
        if keyword in normalized:
            return question_type
    return None


def is_personal(query: str) -> bool:
    normalized = f" {query.lower()} "
    return any(marker in normalized for marker in PERSONAL_MARKERS)


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def format_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _days_until(target: date, today: Optional[date]) -> int:
    return (target - (today or date.today())).days


def get_account_balance(customer: CustomerRecord, today: Optional[date] = None) -> dict:
    """Current balance, due date and last payment."""
    days_until_due = _days_until(customer.due_date, today)
    if days_until_due < 0:
        status = "Past Due"
    elif days_until_due == 0:
        status = "Due Today"
    elif customer.account_balance == 0:
        status = "Paid"
    else:
        status = "Current"

    return {
        "balance": customer.account_balance,
        "formatted_balance": format_money(customer.account_balance),
        "due_date": customer.due_date,
        "days_until_due": days_until_due,
        "last_payment_amount": customer.last_payment_amount,
        "last_payment_date": customer.last_payment_date,
        "status": status,
        "message": (
            f"Your current balance is {format_money(customer.account_balance)}, "
            f"due {format_date(customer.due_date)} ({status})."
        ),
    }


def get_payment_status(customer: CustomerRecord, today: Optional[date] = None) -> dict:
    """Whether a payment was received in the last 30 days."""
    days_since = -_days_until(customer.last_payment_date, today)
    received = days_since <= 30
    amount = format_money(customer.last_payment_amount)
    paid_on = format_date(customer.last_payment_date)
    if received:
        message = f"Payment of {amount} was received on {paid_on}."
    else:
        message = f"Last payment of {amount} was received {days_since} days ago on {paid_on}."
    return {
        "payment_received": received,
        "last_payment_amount": customer.last_payment_amount,
        "last_payment_date": customer.last_payment_date,
        "days_since_payment": days_since,
        "message": message,
    }


def get_due_date(customer: CustomerRecord, today: Optional[date] = None) -> dict:
    days_until_due = _days_until(customer.due_date, today)
    due = format_date(customer.due_date)
    if days_until_due < 0:
        message = f"Your bill was due on {due} and is {abs(days_until_due)} days past due."
    elif days_until_due == 0:
        message = f"Your bill is due today, {due}."
    else:
        message = f"Your bill is due on {due}, which is {days_until_due} days from now."
    return {
        "due_date": customer.due_date,
        "days_until_due": days_until_due,
        "is_past_due": days_until_due < 0,
        "message": message,
    }


def usage_trend(percent_change: float) -> str:
    """Bucket a month-over-month usage change."""
    if percent_change > 20:
        return "Significantly Higher"
    if percent_change > 5:
        return "Higher"
    if percent_change < -20:
        return "Significantly Lower"
    if percent_change < -5:
        return "Lower"
    return "Similar"


def get_usage_analysis(customer: CustomerRecord) -> dict:
    """Compare the latest usage period to the one before it."""
    history = customer.usage_history
    if len(history) < 2:
        return {
            "current_kwh": history[0].total_kwh if history else 0,
            "previous_kwh": 0,
            "difference_kwh": 0,
            "percent_change": 0.0,
            "trend": "Unknown",
            "message": "Insufficient usage history for comparison.",
        }

    current, previous = history[-1], history[-2]
    difference = current.total_kwh - previous.total_kwh
    percent = difference / previous.total_kwh * 100 if previous.total_kwh else 0.0
    trend = usage_trend(percent)

    if trend == "Significantly Higher":
        message = (
            f"Your usage increased by {abs(percent):.0f}% ({difference} kWh) compared to "
            "last month. This could be due to seasonal changes, new appliances, or "
            "increased occupancy."
        )
    elif trend == "Higher":
        message = f"Your usage is up {abs(percent):.0f}% ({difference} kWh) from last month."
    elif trend == "Significantly Lower":
        message = (
            f"Your usage decreased by {abs(percent):.0f}% ({abs(difference)} kWh) "
            "compared to last month."
        )
    elif trend == "Lower":
        message = f"Your usage is down {abs(percent):.0f}% ({abs(difference)} kWh) from last month."
    else:
        message = "Your usage is similar to last month."

    return {
        "current_kwh": current.total_kwh,
        "previous_kwh": previous.total_kwh,
        "difference_kwh": difference,
        "percent_change": round(percent, 1),
        "trend": trend,
        "message": message,
    }


def get_autopay_status(customer: CustomerRecord) -> dict:
    if customer.is_on_autopay:
        message = "You are enrolled in AutoPay. Your bill will be automatically paid on the due date."
    else:
        message = "You are not currently enrolled in AutoPay. Would you like information on how to enroll?"
    return {"is_enrolled": customer.is_on_autopay, "message": message}


def get_bill_details(customer: CustomerRecord) -> Optional[dict]:
    """Most recent bill, or None without billing history."""
    if not customer.billing_history:
        return None
    bill = customer.billing_history[-1]
    read_description = READ_TYPE_DESCRIPTIONS.get(bill.read_type, "Unknown read type")
    return {
        "billing_period": bill.billing_period,
        "kwh_usage": bill.kwh_usage,
        "amount_due": bill.amount_due,
        "formatted_amount": format_money(bill.amount_due),
        "bill_date": bill.bill_date,
        "read_type": bill.read_type,
        "read_type_description": read_description,
        "message": (
            f"Your {bill.billing_period} bill was {format_money(bill.amount_due)} for "
            f"{bill.kwh_usage} kWh ({read_description.lower()})."
        ),
    }


def get_meter_read_type(customer: CustomerRecord) -> dict:
    if not customer.billing_history:
        return {"read_type": "N/A", "billing_period": "N/A",
                "message": "No billing history available."}
    bill = customer.billing_history[-1]
    if bill.read_type == "E":
        message = (
            "Your last bill was based on an estimated meter read. This can happen "
            "when the meter couldn't be accessed."
        )
    else:
        message = "Your last bill was based on an actual meter read."
    return {"read_type": bill.read_type, "billing_period": bill.billing_period, "message": message}


def get_billing_history(customer: CustomerRecord) -> list[dict]:
    """Bills, newest first."""
    bills = sorted(customer.billing_history, key=lambda b: b.bill_date, reverse=True)
    return [
        {
            "billing_period": b.billing_period,
            "amount_due": b.amount_due,
            "formatted_amount": format_money(b.amount_due),
            "kwh_usage": b.kwh_usage,
            "bill_date": b.bill_date,
        }
        for b in bills
    ]
