"""
Mock CIS (Customer Information System) lookup.

In production, this would query the utility's customer system of record.
Three test customers cover the interesting account states: current with
a balance, paid up on AutoPay, and past due with estimated reads.
"""

import logging
import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from billing_assistant.schemas.customer_schema import BillRecord, CustomerRecord, UsageRecord
from billing_assistant.utils import digits_only, normalize_phone

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")


class IdentityStore(Protocol):
    """Read-only customer lookup consumed by the authentication flow."""

    def find_by_identifier(self, identifier: str) -> Optional[CustomerRecord]:
        ...


def mock_customers(today: Optional[date] = None) -> list[CustomerRecord]:
    """Build the seed customers with dates relative to ``today``."""
    today = today or date.today()
    return [
        CustomerRecord(
            account_number="1234567890",
            name="John Smith",
            phone="555-1234",
            email="john.smith@example.com",
            service_address="123 Main St, Anytown, ST 12345",
            last_four_ssn="1234",
            date_of_birth=date(1985, 3, 15),
            account_balance=Decimal("187.43"),
            due_date=today + timedelta(days=12),
            last_payment_amount=Decimal("142.50"),
            last_payment_date=today - timedelta(days=18),
            is_on_autopay=False,
            rate_code="R1",
            meter_number="MTR-00123456",
            billing_history=[
                BillRecord(billing_period="2024-01", kwh_usage=892, amount_due=Decimal("142.50"),
                           read_type="A", bill_date=today - timedelta(days=48)),
                BillRecord(billing_period="2024-02", kwh_usage=1247, amount_due=Decimal("187.43"),
                           read_type="A", bill_date=today - timedelta(days=18)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", total_kwh=892, avg_daily_kwh=Decimal("28.8")),
                UsageRecord(period="2024-02", total_kwh=1247, avg_daily_kwh=Decimal("44.5")),
            ],
            delinquency_status="Current",
            eligible_for_extension=True,
        ),
        CustomerRecord(
            account_number="9876543210",
            name="Maria Garcia",
            phone="555-5678",
            email="maria.garcia@example.com",
            service_address="456 Oak Ave, Anytown, ST 12345",
            last_four_ssn="5678",
            date_of_birth=date(1990, 7, 22),
            account_balance=Decimal("0.00"),
            due_date=today + timedelta(days=5),
            last_payment_amount=Decimal("98.50"),
            last_payment_date=today - timedelta(days=3),
            is_on_autopay=True,
            rate_code="R1",
            meter_number="MTR-00789012",
            billing_history=[
                BillRecord(billing_period="2024-01", kwh_usage=654, amount_due=Decimal("98.50"),
                           read_type="A", bill_date=today - timedelta(days=33)),
                BillRecord(billing_period="2024-02", kwh_usage=687, amount_due=Decimal("102.30"),
                           read_type="A", bill_date=today - timedelta(days=3)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", total_kwh=654, avg_daily_kwh=Decimal("23.4")),
                UsageRecord(period="2024-02", total_kwh=687, avg_daily_kwh=Decimal("24.5")),
            ],
            delinquency_status="Current",
            eligible_for_extension=False,
        ),
        CustomerRecord(
            account_number="5555555555",
            name="Robert Johnson",
            phone="555-9999",
            email="rjohnson@example.com",
            service_address="789 Elm St, Anytown, ST 12345",
            last_four_ssn="9999",
            date_of_birth=date(1972, 11, 8),
            account_balance=Decimal("423.67"),
            due_date=today - timedelta(days=5),
            last_payment_amount=Decimal("150.00"),
            last_payment_date=today - timedelta(days=45),
            is_on_autopay=False,
            rate_code="R1",
            meter_number="MTR-00345678",
            billing_history=[
                BillRecord(billing_period="2024-01", kwh_usage=1456, amount_due=Decimal("218.40"),
                           read_type="E", bill_date=today - timedelta(days=60)),
                BillRecord(billing_period="2024-02", kwh_usage=1523, amount_due=Decimal("228.45"),
                           read_type="A", bill_date=today - timedelta(days=30)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", total_kwh=1456, avg_daily_kwh=Decimal("52.0")),
                UsageRecord(period="2024-02", total_kwh=1523, avg_daily_kwh=Decimal("54.4")),
            ],
            delinquency_status="PastDue",
            eligible_for_extension=True,
        ),
    ]


class InMemoryIdentityStore:
    """Indexes customers by phone, email (lowercased) and account number."""

    def __init__(self, customers: Optional[Iterable[CustomerRecord]] = None) -> None:
        records = list(customers) if customers is not None else mock_customers()
        self._by_phone = {normalize_phone(c.phone): c for c in records}
        self._by_email = {c.email.lower(): c for c in records}
        self._by_account = {c.account_number: c for c in records}

    def find_by_identifier(self, identifier: str) -> Optional[CustomerRecord]:
        """Look up by phone, then email (case-insensitive), then account number."""
        identifier = identifier.strip()
        if not identifier:
            return None

        email = _EMAIL_RE.search(identifier)
        if email is None:
            customer = self._by_phone.get(normalize_phone(identifier))
            if customer:
                logger.debug("Customer matched by phone: %s", customer.account_number)
                return customer
        else:
            customer = self._by_email.get(email.group(0).lower())
            if customer:
                logger.debug("Customer matched by email: %s", customer.account_number)
                return customer

        customer = self._by_account.get(digits_only(identifier))
        if customer:
            logger.debug("Customer matched by account number: %s", customer.account_number)
        return customer

    def get_by_account(self, account_number: str) -> Optional[CustomerRecord]:
        return self._by_account.get(account_number)
