"""Customer records from the CIS (Customer Information System)."""

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BillRecord(BaseModel):
    """Single bill from CIS. ``read_type`` is A=Actual, E=Estimated."""

    model_config = ConfigDict(frozen=True)

    billing_period: str
    kwh_usage: int
    amount_due: Decimal
    read_type: Literal["A", "E"]
    bill_date: date


class UsageRecord(BaseModel):
    """Usage for one period from meter data management."""

    model_config = ConfigDict(frozen=True)

    period: str
    total_kwh: int
    avg_daily_kwh: Decimal


class CustomerRecord(BaseModel):
    """Utility customer with the two verification factors and account data."""

    model_config = ConfigDict(frozen=True)

    account_number: str
    name: str
    phone: str
    email: str
    service_address: str
    last_four_ssn: str
    date_of_birth: date
    account_balance: Decimal
    due_date: date
    last_payment_amount: Decimal
    last_payment_date: date
    is_on_autopay: bool = False
    rate_code: str = "R1"
    meter_number: str = ""
    billing_history: list[BillRecord] = Field(default_factory=list)
    usage_history: list[UsageRecord] = Field(default_factory=list)
    delinquency_status: Literal["Current", "PastDue", "Collections"] = "Current"
    eligible_for_extension: bool = False
