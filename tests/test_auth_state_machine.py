"""Tests for the authentication state machine and its per-state flows."""

from datetime import timedelta

import pytest

from billing_assistant.config import AuthConfig
from billing_assistant.conversation.auth_state_machine import (
    TRANSITIONS,
    AnonymousFlow,
    AuthenticatedFlow,
    AuthTrigger,
    Factor,
    LockedOutFlow,
    VerificationOutcome,
    VerifyingFlow,
    apply_transition,
    detect_factor,
    flow_for,
    get_valid_triggers,
)
from billing_assistant.errors import InvalidTransitionError
from billing_assistant.schemas.session_schema import AuthProgress, AuthState, ConversationSession


def _flow(session, identity_store, auth_config, clock):
    return flow_for(session, identity_store, config=auth_config, clock=clock)


def _verifying(session, identity_store, auth_config, clock, identifier="555-1234"):
    flow = _flow(session, identity_store, auth_config, clock)
    assert flow.lookup(identifier).found
    flow = _flow(session, identity_store, auth_config, clock)
    assert isinstance(flow, VerifyingFlow)
    return flow


class TestTransitions:
    def test_all_transitions_from_anonymous(self):
        assert get_valid_triggers(AuthState.ANONYMOUS) == [AuthTrigger.CUSTOMER_FOUND]

    def test_locked_out_is_terminal(self):
        assert get_valid_triggers(AuthState.LOCKED_OUT) == []
        assert all(t.from_state != AuthState.LOCKED_OUT for t in TRANSITIONS)

    def test_valid_transition(self):
        progress = AuthProgress()
        assert apply_transition(progress, AuthTrigger.CUSTOMER_FOUND) == AuthState.VERIFYING
        assert progress.auth_state == AuthState.VERIFYING

    def test_invalid_transition_raises(self):
        progress = AuthProgress()
        with pytest.raises(InvalidTransitionError, match="anonymous"):
            apply_transition(progress, AuthTrigger.VERIFICATION_COMPLETED)
        assert progress.auth_state == AuthState.ANONYMOUS

    def test_expired_can_start_over(self):
        progress = AuthProgress(auth_state=AuthState.EXPIRED)
        assert apply_transition(progress, AuthTrigger.CUSTOMER_FOUND) == AuthState.VERIFYING


class TestFlowSelection:
    @pytest.mark.parametrize("state, flow_cls", [
        (AuthState.ANONYMOUS, AnonymousFlow),
        (AuthState.EXPIRED, AnonymousFlow),
        (AuthState.VERIFYING, VerifyingFlow),
        (AuthState.AUTHENTICATED, AuthenticatedFlow),
        (AuthState.LOCKED_OUT, LockedOutFlow),
    ])
    def test_flow_for_state(self, state, flow_cls, identity_store, auth_config, clock):
        session = ConversationSession(session_id="s", auth=AuthProgress(auth_state=state))
        assert type(_flow(session, identity_store, auth_config, clock)) is flow_cls

    def test_anonymous_flow_cannot_verify(self, session, identity_store, auth_config, clock):
        flow = _flow(session, identity_store, auth_config, clock)
        assert not hasattr(flow, "verify")
        assert not hasattr(flow, "complete")

    def test_locked_out_flow_has_no_operations(self, identity_store, auth_config, clock):
        session = ConversationSession(
            session_id="s", auth=AuthProgress(auth_state=AuthState.LOCKED_OUT)
        )
        flow = _flow(session, identity_store, auth_config, clock)
        for name in ("lookup", "verify", "complete", "expire"):
            assert not hasattr(flow, name)


class TestLookup:
    @pytest.mark.parametrize("identifier", [
        "555-1234",
        "555 1234",
        "My phone number is 555-1234",
        "john.smith@example.com",
        "JOHN.SMITH@EXAMPLE.COM",
        "1234567890",
    ])
    def test_lookup_by_any_identifier(self, identifier, session, identity_store, auth_config, clock):
        result = _flow(session, identity_store, auth_config, clock).lookup(identifier)
        assert result.found
        assert result.customer_name == "John Smith"
        assert session.auth_state == AuthState.VERIFYING
        assert session.customer_id == "1234567890"

    def test_miss_changes_nothing(self, session, identity_store, auth_config, clock):
        flow = _flow(session, identity_store, auth_config, clock)
        for _ in range(5):
            assert not flow.lookup("555-0000").found
        assert session.auth_state == AuthState.ANONYMOUS
        assert session.auth.failed_attempts == 0
        assert session.customer_id is None

    def test_lookup_resets_progress(self, session, identity_store, auth_config, clock):
        session.auth.failed_attempts = 2
        session.auth.verified_factors = ["SSN"]
        _flow(session, identity_store, auth_config, clock).lookup("555-5678")
        assert session.auth.failed_attempts == 0
        assert session.auth.verified_factors == []
        assert session.customer_name == "Maria Garcia"

    def test_stale_anonymous_flow_refuses_lookup(self, session, identity_store, auth_config, clock):
        flow = _flow(session, identity_store, auth_config, clock)
        flow.lookup("555-1234")
        result = flow.lookup("555-5678")
        assert not result.found
        assert session.customer_name == "John Smith"


class TestVerification:
    def test_ssn_match(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        result = flow.verify(Factor.SSN, "1234")
        assert result.outcome == VerificationOutcome.VERIFIED
        assert session.auth.verified_factors == ["SSN"]

    @pytest.mark.parametrize("answer", ["03/15/1985", "1985-03-15", "March 15, 1985"])
    def test_dob_match_any_format(self, answer, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        assert flow.verify(detect_factor(answer), answer).verified

    def test_detect_factor(self):
        assert detect_factor("1234") == Factor.SSN
        assert detect_factor("03/15/1985") == Factor.DOB

    def test_wrong_answer_counts_down(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        first = flow.verify(Factor.SSN, "0000")
        second = flow.verify(Factor.SSN, "1111")
        assert first.outcome == VerificationOutcome.RETRY
        assert first.remaining_attempts == 2
        assert second.remaining_attempts == 1
        assert session.auth_state == AuthState.VERIFYING

    def test_lockout_after_max_attempts(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        outcomes = [flow.verify(Factor.SSN, wrong).outcome for wrong in ("0000", "1111", "2222")]
        assert outcomes[-1] == VerificationOutcome.LOCKED_OUT
        assert session.auth_state == AuthState.LOCKED_OUT
        assert session.auth.failed_attempts == 3
        assert isinstance(_flow(session, identity_store, auth_config, clock), LockedOutFlow)

    def test_verify_after_lockout_rejected(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        for wrong in ("0000", "1111", "2222"):
            flow.verify(Factor.SSN, wrong)
        result = flow.verify(Factor.SSN, "1234")
        assert result.outcome == VerificationOutcome.REJECTED
        assert session.auth.failed_attempts == 3
        assert session.auth_state == AuthState.LOCKED_OUT

    def test_lockout_is_deterministic(self, identity_store, auth_config, clock):
        for _ in range(3):
            session = ConversationSession(session_id="s")
            flow = _verifying(session, identity_store, auth_config, clock)
            for wrong in ("0000", "1111", "2222"):
                flow.verify(Factor.SSN, wrong)
            assert session.auth_state == AuthState.LOCKED_OUT

    def test_success_after_failure_keeps_count(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        flow.verify(Factor.SSN, "0000")
        assert flow.verify(Factor.SSN, "1234").verified
        assert session.auth.failed_attempts == 1

    def test_missing_customer_is_error(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        session.auth.identifying_info = "555-0000"
        result = flow.verify(Factor.SSN, "1234")
        assert result.outcome == VerificationOutcome.ERROR
        assert session.auth.failed_attempts == 0


class TestCompletion:
    def test_complete_requires_a_factor(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        assert flow.complete().outcome == VerificationOutcome.REJECTED
        assert session.auth_state == AuthState.VERIFYING

    def test_complete_sets_window(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        flow.verify(Factor.SSN, "1234")
        result = flow.complete()
        assert result.outcome == VerificationOutcome.AUTHENTICATED
        assert session.auth_state == AuthState.AUTHENTICATED
        assert session.authenticated_at == clock.now
        assert session.session_expiry == clock.now + timedelta(minutes=30)
        assert session.is_authenticated(clock.now)

    def test_two_factor_policy(self, session, identity_store, clock):
        config = AuthConfig(max_attempts=3, required_factors=2, session_minutes=30)
        flow = _verifying(session, identity_store, config, clock)
        flow.verify(Factor.SSN, "1234")
        flow.verify(Factor.SSN, "1234")
        assert flow.factors_needed == 1
        assert flow.complete().outcome == VerificationOutcome.REJECTED
        flow.verify(Factor.DOB, "03/15/1985")
        assert flow.factors_needed == 0
        assert flow.complete().outcome == VerificationOutcome.AUTHENTICATED


class TestExpiry:
    def _authenticated(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        flow.verify(Factor.SSN, "1234")
        flow.complete()
        flow = _flow(session, identity_store, auth_config, clock)
        assert isinstance(flow, AuthenticatedFlow)
        return flow

    def test_not_expired_inside_window(self, session, identity_store, auth_config, clock):
        flow = self._authenticated(session, identity_store, auth_config, clock)
        clock.advance(minutes=29)
        assert not flow.is_expired()

    def test_expired_after_window(self, session, identity_store, auth_config, clock):
        flow = self._authenticated(session, identity_store, auth_config, clock)
        clock.advance(minutes=30)
        assert flow.is_expired()
        assert not session.is_authenticated(clock.now)

    def test_expire_clears_identity(self, session, identity_store, auth_config, clock):
        flow = self._authenticated(session, identity_store, auth_config, clock)
        clock.advance(minutes=31)
        flow.expire()
        assert session.auth_state == AuthState.EXPIRED
        assert session.customer_id is None
        assert session.auth.verified_factors == []
        assert session.session_expiry is None

    def test_reauthenticate_after_expiry(self, session, identity_store, auth_config, clock):
        flow = self._authenticated(session, identity_store, auth_config, clock)
        clock.advance(minutes=31)
        flow.expire()
        again = _verifying(session, identity_store, auth_config, clock, identifier="1234567890")
        assert again.verify(Factor.DOB, "03/15/1985").verified
        again.complete()
        assert session.is_authenticated(clock.now)


class TestResumeAfterRestart:
    def test_round_trip_mid_verification(self, session, identity_store, auth_config, clock):
        flow = _verifying(session, identity_store, auth_config, clock)
        flow.verify(Factor.SSN, "0000")

        restored = ConversationSession.from_json(session.to_json())
        assert restored.auth_state == AuthState.VERIFYING
        assert restored.auth.failed_attempts == 1

        resumed = _flow(restored, identity_store, auth_config, clock)
        assert isinstance(resumed, VerifyingFlow)
        assert resumed.remaining_attempts == 2
        assert resumed.verify(Factor.SSN, "1234").verified
        assert resumed.complete().outcome == VerificationOutcome.AUTHENTICATED
