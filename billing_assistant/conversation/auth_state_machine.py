"""
Finite state machine for in-band identity verification.

Defines the authentication states and the explicit transitions between
them. Each state is represented by its own flow class that exposes only
the operations valid in that state, so a caller holding an
``AnonymousFlow`` cannot verify and a caller holding a ``LockedOutFlow``
cannot do anything at all.

Usage:
    flow = flow_for(session, identity_store)
    if isinstance(flow, AnonymousFlow):
        result = flow.lookup("555-1234")
    flow = flow_for(session, identity_store)
    if isinstance(flow, VerifyingFlow):
        if flow.verify(Factor.SSN, "1234").verified:
            flow.complete()
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, ClassVar, Optional, Union

from billing_assistant.config import AuthConfig, settings
from billing_assistant.errors import InvalidTransitionError
from billing_assistant.schemas.customer_schema import CustomerRecord
from billing_assistant.schemas.session_schema import (
    AuthProgress,
    AuthState,
    ConversationSession,
    utcnow,
)
from billing_assistant.tools.customer import IdentityStore
from billing_assistant.utils import digits_only, parse_date

logger = logging.getLogger(__name__)


class AuthTrigger(str, Enum):
    """Events that cause authentication state transitions."""
    CUSTOMER_FOUND = "customer_found"
    VERIFICATION_COMPLETED = "verification_completed"
    MAX_ATTEMPTS = "max_attempts"
    SESSION_EXPIRED = "session_expired"


class Factor(str, Enum):
    """Knowledge factors a caller can answer in conversation."""
    SSN = "SSN"
    DOB = "DOB"


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    AUTHENTICATED = "authenticated"
    RETRY = "retry"
    LOCKED_OUT = "locked_out"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass(frozen=True)
class Transition:
    """A single valid state transition."""
    from_state: AuthState
    to_state: AuthState
    trigger: AuthTrigger


TRANSITIONS: list[Transition] = [
    Transition(AuthState.ANONYMOUS, AuthState.VERIFYING, AuthTrigger.CUSTOMER_FOUND),
    # A stale session starts a fresh cycle with a new lookup
    Transition(AuthState.EXPIRED, AuthState.VERIFYING, AuthTrigger.CUSTOMER_FOUND),
    Transition(AuthState.VERIFYING, AuthState.AUTHENTICATED, AuthTrigger.VERIFICATION_COMPLETED),
    Transition(AuthState.VERIFYING, AuthState.LOCKED_OUT, AuthTrigger.MAX_ATTEMPTS),
    Transition(AuthState.AUTHENTICATED, AuthState.EXPIRED, AuthTrigger.SESSION_EXPIRED),
]


def get_valid_triggers(state: AuthState) -> list[AuthTrigger]:
    """Return all triggers valid from ``state``."""
    return [t.trigger for t in TRANSITIONS if t.from_state == state]


def apply_transition(progress: AuthProgress, trigger: AuthTrigger) -> AuthState:
    """
    Execute a state transition on ``progress``.

    Raises:
        InvalidTransitionError: If no valid transition exists.
    """
    for t in TRANSITIONS:
        if t.from_state == progress.auth_state and t.trigger == trigger:
            old_state = progress.auth_state
            progress.auth_state = t.to_state
            logger.debug(
                "Auth transition: %s -> %s (trigger: %s)",
                old_state.value, t.to_state.value, trigger.value,
            )
            return t.to_state

    valid = [t.value for t in get_valid_triggers(progress.auth_state)]
    raise InvalidTransitionError(
        f"No valid transition from '{progress.auth_state.value}' "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


@dataclass(frozen=True)
class LookupResult:
    """Result from a customer lookup by identifier."""
    found: bool
    message: str
    customer_name: Optional[str] = None


@dataclass(frozen=True)
class VerificationResult:
    """Result from a verification or completion attempt."""
    outcome: VerificationOutcome
    remaining_attempts: int
    message: str

    @property
    def verified(self) -> bool:
        return self.outcome in (VerificationOutcome.VERIFIED, VerificationOutcome.AUTHENTICATED)


def detect_factor(answer: str) -> Factor:
    """Guess which factor a free-text answer is for: a date means DOB."""
    return Factor.DOB if parse_date(answer) is not None else Factor.SSN


def factor_matches(customer: CustomerRecord, factor: Factor, answer: str) -> bool:
    """Compare an answer against the customer's true value. Pure."""
    if factor == Factor.SSN:
        return digits_only(answer) == customer.last_four_ssn
    if factor == Factor.DOB:
        return parse_date(answer) == customer.date_of_birth
    return False


class _AuthFlow:
    """Shared plumbing for the per-state flows."""

    states: ClassVar[tuple[AuthState, ...]] = ()

    def __init__(
        self,
        session: ConversationSession,
        identity_store: IdentityStore,
        config: Optional[AuthConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._store = identity_store
        self._config = config or settings.auth
        self._clock = clock

    @property
    def progress(self) -> AuthProgress:
        return self._session.auth

    @property
    def remaining_attempts(self) -> int:
        return max(self._config.max_attempts - self.progress.failed_attempts, 0)

    def _is_current(self) -> bool:
        return self.progress.auth_state in self.states


class AnonymousFlow(_AuthFlow):
    """No identity yet (or the last one expired). Only lookup is possible."""

    states = (AuthState.ANONYMOUS, AuthState.EXPIRED)

    def lookup(self, identifier: str) -> LookupResult:
        """Find the customer by phone, email or account number.

        A miss changes nothing and does not count against the attempt budget.
        """
        if not self._is_current():
            return LookupResult(
                found=False,
                message=f"Lookup is not available while {self.progress.auth_state.value}.",
            )

        customer = self._store.find_by_identifier(identifier)
        if customer is None:
            logger.info("Identity lookup miss")
            return LookupResult(
                found=False,
                message="No account found with that phone, email, or account number.",
            )

        progress = self.progress
        progress.identifying_info = identifier.strip()
        progress.verified_factors = []
        progress.failed_attempts = 0
        self._session.customer_id = customer.account_number
        self._session.customer_name = customer.name
        apply_transition(progress, AuthTrigger.CUSTOMER_FOUND)
        logger.info("Identity lookup matched account %s", customer.account_number)
        return LookupResult(
            found=True,
            customer_name=customer.name,
            message=f"Found account for {customer.name}. Proceed with verification.",
        )


class VerifyingFlow(_AuthFlow):
    """Customer found; answering knowledge factors."""

    states = (AuthState.VERIFYING,)

    def verify(self, factor: Factor, answer: str) -> VerificationResult:
        """Check one factor answer, counting failures toward lockout."""
        if not self._is_current():
            logger.warning(
                "Verification rejected in state %s", self.progress.auth_state.value
            )
            return VerificationResult(
                outcome=VerificationOutcome.REJECTED,
                remaining_attempts=self.remaining_attempts,
                message=f"Verification is not available while {self.progress.auth_state.value}.",
            )

        progress = self.progress
        customer = self._store.find_by_identifier(progress.identifying_info or "")
        if customer is None:
            logger.error("Customer for identifying info disappeared during verification")
            return VerificationResult(
                outcome=VerificationOutcome.ERROR,
                remaining_attempts=self.remaining_attempts,
                message="Customer not found.",
            )

        if factor_matches(customer, factor, answer):
            if factor.value not in progress.verified_factors:
                progress.verified_factors.append(factor.value)
            logger.info("Factor %s verified", factor.value)
            return VerificationResult(
                outcome=VerificationOutcome.VERIFIED,
                remaining_attempts=self.remaining_attempts,
                message=f"{factor.value} verified successfully.",
            )

        progress.failed_attempts += 1
        remaining = self.remaining_attempts
        logger.info("Factor %s failed, %d attempt(s) remaining", factor.value, remaining)

        if remaining <= 0:
            apply_transition(progress, AuthTrigger.MAX_ATTEMPTS)
            logger.warning("Verification locked out after %d failures", progress.failed_attempts)
            return VerificationResult(
                outcome=VerificationOutcome.LOCKED_OUT,
                remaining_attempts=0,
                message="Account locked due to too many failed attempts.",
            )

        return VerificationResult(
            outcome=VerificationOutcome.RETRY,
            remaining_attempts=remaining,
            message=f"Incorrect. {remaining} attempt{'' if remaining == 1 else 's'} remaining.",
        )

    @property
    def factors_needed(self) -> int:
        return max(self._config.required_factors - len(self.progress.verified_factors), 0)

    def complete(self) -> VerificationResult:
        """Mark the caller authenticated once enough factors are verified."""
        if not self._is_current() or self.factors_needed > 0:
            return VerificationResult(
                outcome=VerificationOutcome.REJECTED,
                remaining_attempts=self.remaining_attempts,
                message="No verification completed yet.",
            )

        apply_transition(self.progress, AuthTrigger.VERIFICATION_COMPLETED)
        now = self._clock()
        self._session.authenticated_at = now
        self._session.session_expiry = now + timedelta(minutes=self._config.session_minutes)
        logger.info("Authentication complete for account %s", self._session.customer_id)
        return VerificationResult(
            outcome=VerificationOutcome.AUTHENTICATED,
            remaining_attempts=self.remaining_attempts,
            message=f"Authentication complete. Customer {self._session.customer_name} is now verified.",
        )


class AuthenticatedFlow(_AuthFlow):
    """Verified customer with a bounded authentication window."""

    states = (AuthState.AUTHENTICATED,)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expiry = self._session.session_expiry
        return expiry is None or expiry <= (now or self._clock())

    def expire(self) -> None:
        """Drop the verified identity so the next account question re-verifies."""
        apply_transition(self.progress, AuthTrigger.SESSION_EXPIRED)
        progress = self.progress
        progress.verified_factors = []
        progress.failed_attempts = 0
        progress.identifying_info = None
        self._session.customer_id = None
        self._session.customer_name = None
        self._session.authenticated_at = None
        self._session.session_expiry = None
        logger.info("Authenticated session expired")


class LockedOutFlow(_AuthFlow):
    """Terminal failure. Nothing to call; the router escalates to a human."""

    states = (AuthState.LOCKED_OUT,)


AuthFlow = Union[AnonymousFlow, VerifyingFlow, AuthenticatedFlow, LockedOutFlow]

_FLOW_BY_STATE: dict[AuthState, type] = {
    AuthState.ANONYMOUS: AnonymousFlow,
    AuthState.EXPIRED: AnonymousFlow,
    AuthState.VERIFYING: VerifyingFlow,
    AuthState.AUTHENTICATED: AuthenticatedFlow,
    AuthState.LOCKED_OUT: LockedOutFlow,
}


def flow_for(
    session: ConversationSession,
    identity_store: IdentityStore,
    config: Optional[AuthConfig] = None,
    clock: Callable[[], datetime] = utcnow,
) -> AuthFlow:
    """Return the flow object for the session's current authentication state."""
    flow_cls = _FLOW_BY_STATE[session.auth.auth_state]
    return flow_cls(session, identity_store, config=config, clock=clock)
