"""
Orchestration router: the per-message state machine.

Each inbound message is processed under its session's lock, in this order:
1. Handoff in progress: cancel, relay to the ticket, or wait for the agent.
2. Authentication in progress: feed the message to the current auth flow.
3. Otherwise classify and dispatch to FAQ, account data, auth or handoff.

When authentication completes, the deferred question is re-dispatched by
the driving loop (at most one hop) instead of the router calling itself.
Resolved FAQ and account answers carry up to two suggested follow-ups; a
question neither responder can answer goes to a human.

Usage:
    router = ConversationRouter(sessions, tickets, identity_store, classifier,
                                faq, account_data, summarizer, next_best_action)
    response = await router.handle_message("sess-1", "What is my balance?")
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from billing_assistant.agents.contracts import (
    AccountDataResponder,
    Classifier,
    FAQResponder,
    NextBestActionProvider,
    Summarizer,
)
from billing_assistant.config import AppConfig, settings
from billing_assistant.conversation.auth_state_machine import (
    AnonymousFlow,
    AuthenticatedFlow,
    AuthFlow,
    LockedOutFlow,
    VerificationOutcome,
    VerifyingFlow,
    detect_factor,
    flow_for,
)
from billing_assistant.conversation.handoff_manager import HandoffTicketManager, follow_up_for
from billing_assistant.conversation.session_manager import SessionManager
from billing_assistant.errors import InvalidTransitionError, PreconditionViolation
from billing_assistant.logging_context import get_session_logger, set_session_id
from billing_assistant.prompts import prompt_templates as templates
from billing_assistant.schemas.classification_schema import QuestionCategory
from billing_assistant.schemas.handoff_schema import AgentResponse, HandoffSummary, ResolutionKind
from billing_assistant.schemas.response_schema import ChatResponse, RequiredAction
from billing_assistant.schemas.session_schema import (
    AuthState,
    ConversationSession,
    HandoffState,
    Message,
    Role,
    utcnow,
)
from billing_assistant.tools.customer import IdentityStore

logger = get_session_logger(__name__)

MAX_REDISPATCH_HOPS = 1

LOCKOUT_REASON = "authentication lockout"
SYSTEM_ERROR_REASON = "system error"
HUMAN_REQUESTED_REASON = "customer requested human"
SERVICE_REQUEST_REASON = "service request requires staff action"
LOW_CONFIDENCE_REASON = "unable to classify request"
FAQ_MISS_REASON = "question outside FAQ knowledge base"
ACCOUNT_MISS_REASON = "account question outside assistant capabilities"

CANCEL_PHRASES = {
    "cancel", "cancel that", "cancel it", "cancel the request", "never mind",
    "nevermind", "forget it", "stop waiting", "stop", "go back",
}

_AUTH_ACTIVE_STATES = (AuthState.ANONYMOUS, AuthState.EXPIRED, AuthState.VERIFYING)


@dataclass(frozen=True)
class Redispatch:
    """Instruction to the driving loop: route ``query`` again for this session."""
    query: str
    preface: str


RouteOutcome = Union[ChatResponse, Redispatch]


def is_cancel_request(text: str) -> bool:
    normalized = re.sub(r"[^\w\s]", "", text.lower()).strip()
    return normalized in CANCEL_PHRASES


class ConversationRouter:
    """Routes one customer message at a time per session to the right sub-flow."""

    def __init__(
        self,
        sessions: SessionManager,
        tickets: HandoffTicketManager,
        identity_store: IdentityStore,
        classifier: Classifier,
        faq: FAQResponder,
        account_data: AccountDataResponder,
        summarizer: Summarizer,
        next_best_action: Optional[NextBestActionProvider] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions = sessions
        self._tickets = tickets
        self._identity_store = identity_store
        self._classifier = classifier
        self._faq = faq
        self._account_data = account_data
        self._summarizer = summarizer
        self._next_best_action = next_best_action
        self._config = config or settings
        self._clock = clock

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def tickets(self) -> HandoffTicketManager:
        return self._tickets

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def handle_message(
        self,
        session_id: str,
        text: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatResponse:
        """
        Process one customer message and persist the session.

        ``cancel_event`` lets the transport abandon a wait for a human reply,
        e.g. when the customer disconnects.

        Raises:
            PreconditionViolation: Internal contract broken. Never shown to
                the customer as an answer.
        """
        set_session_id(session_id)
        async with self._sessions.lock(session_id):
            session = await self._sessions.get_or_create(session_id)
            session.last_interaction = self._clock()
            session.add_message(Role.USER, text)

            try:
                response = await self._dispatch(session, text, cancel_event)
            except (Exception, asyncio.CancelledError):
                # The user message is already on the cached session; persist it
                await self._sessions.save(session)
                raise

            session.add_message(response.sender, response.message)
            await self._sessions.save(session)

        logger.info(
            "Handled message: category=%s action=%s",
            response.category.value if response.category else None,
            response.required_action.value,
        )
        return response

    async def _dispatch(
        self,
        session: ConversationSession,
        text: str,
        cancel_event: Optional[asyncio.Event],
    ) -> ChatResponse:
        if session.in_handoff():
            response = await self._continue_handoff(session, text, cancel_event)
            if response is not None:
                return response

        prefaces: list[str] = []
        query = text
        for _ in range(MAX_REDISPATCH_HOPS + 1):
            try:
                outcome = await self._route(session, query)
            except (PreconditionViolation, InvalidTransitionError):
                raise
            except Exception:
                logger.exception("Answer provider failed, escalating")
                outcome = await self._escalate(session, query, SYSTEM_ERROR_REASON)

            if isinstance(outcome, ChatResponse):
                if prefaces:
                    outcome = outcome.model_copy(
                        update={"message": " ".join([*prefaces, outcome.message])}
                    )
                return await self._with_suggestions(session, outcome)

            logger.info("Re-dispatching deferred question after authentication")
            prefaces.append(outcome.preface)
            query = outcome.query

        raise PreconditionViolation("Deferred question re-dispatched more than once")

    @staticmethod
    def _resolved_answer(response: ChatResponse) -> bool:
        return (
            response.category in (QuestionCategory.BILLING_FAQ, QuestionCategory.ACCOUNT_DATA)
            and response.required_action == RequiredAction.NONE
            and response.sender == Role.ASSISTANT
        )

    async def _with_suggestions(
        self, session: ConversationSession, response: ChatResponse
    ) -> ChatResponse:
        """Attach follow-up suggestions to a resolved answer. Never raises."""
        if self._next_best_action is None or not self._resolved_answer(response):
            return response
        try:
            suggestions = await asyncio.wait_for(
                self._next_best_action.suggest(
                    list(session.conversation_history),
                    response.category,
                    session.is_authenticated(self._clock()),
                ),
                timeout=self._config.router.suggestion_timeout_seconds,
            )
        except Exception:
            logger.warning("Follow-up suggestions unavailable", exc_info=True)
            return response
        return response.model_copy(update={"suggested_actions": list(suggestions)})

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    def _flow(self, session: ConversationSession) -> AuthFlow:
        return flow_for(session, self._identity_store, config=self._config.auth, clock=self._clock)

    @staticmethod
    def _auth_flow_active(session: ConversationSession) -> bool:
        return session.pending_query is not None and session.auth_state in _AUTH_ACTIVE_STATES

    def _history_for_classifier(self, session: ConversationSession) -> list[Message]:
        window = self._config.router.history_window
        # Exclude the message being classified
        earlier = session.conversation_history[:-1]
        return list(earlier[-window:]) if window > 0 else []

    async def _route(self, session: ConversationSession, text: str) -> RouteOutcome:
        if self._auth_flow_active(session):
            return await self._continue_auth(session, text)

        classification = await self._classifier.classify(
            text, self._history_for_classifier(session)
        )
        category = classification.category
        logger.info(
            "Classified as %s (confidence %.2f)", category.value, classification.confidence
        )

        if category == QuestionCategory.BILLING_FAQ:
            answer = await self._faq.answer(text)
            if not answer.found:
                return await self._escalate(session, text, FAQ_MISS_REASON, category)
            return ChatResponse(message=answer.text, category=category)

        if category == QuestionCategory.ACCOUNT_DATA:
            return await self._account_question(session, text)

        if category == QuestionCategory.SERVICE_REQUEST:
            return await self._escalate(session, text, SERVICE_REQUEST_REASON, category)

        if category == QuestionCategory.HUMAN_REQUESTED:
            return await self._escalate(session, text, HUMAN_REQUESTED_REASON, category)

        if classification.confidence < self._config.router.low_confidence_threshold:
            return await self._escalate(
                session, text, LOW_CONFIDENCE_REASON, QuestionCategory.HUMAN_REQUESTED
            )
        return ChatResponse(
            message=templates.CLARIFICATION,
            category=category,
            required_action=RequiredAction.CLARIFICATION_NEEDED,
        )

    async def _account_question(self, session: ConversationSession, text: str) -> ChatResponse:
        category = QuestionCategory.ACCOUNT_DATA
        flow = self._flow(session)

        if isinstance(flow, AuthenticatedFlow):
            if not flow.is_expired():
                return await self._answer_account(session, text)
            flow.expire()
            flow = self._flow(session)

        if isinstance(flow, LockedOutFlow):
            return await self._escalate(session, text, LOCKOUT_REASON, category)

        session.pending_query = text
        if isinstance(flow, VerifyingFlow):
            message = templates.build_factor_prompt(session.customer_name)
        else:
            message = templates.ASK_FOR_IDENTIFIER
        return ChatResponse(
            message=message,
            category=category,
            required_action=RequiredAction.AUTHENTICATION_IN_PROGRESS,
        )

    async def _answer_account(self, session: ConversationSession, text: str) -> ChatResponse:
        if not session.is_authenticated(self._clock()) or not session.customer_id:
            raise PreconditionViolation("Account data requested without a completed authentication")
        category = QuestionCategory.ACCOUNT_DATA
        answer = await self._account_data.answer(text, session.customer_id)
        if not answer.found:
            return await self._escalate(session, text, ACCOUNT_MISS_REASON, category)
        return ChatResponse(message=answer.text, category=category)

    # ------------------------------------------------------------------ #
    # Authentication
    # ------------------------------------------------------------------ #

    async def _continue_auth(self, session: ConversationSession, text: str) -> RouteOutcome:
        category = QuestionCategory.ACCOUNT_DATA
        in_progress = RequiredAction.AUTHENTICATION_IN_PROGRESS

        if is_cancel_request(text):
            session.pending_query = None
            return ChatResponse(message=templates.AUTH_CANCELLED)

        flow = self._flow(session)
        if isinstance(flow, AnonymousFlow):
            lookup = flow.lookup(text)
            if not lookup.found:
                return ChatResponse(
                    message=templates.LOOKUP_MISS, category=category, required_action=in_progress
                )
            return ChatResponse(
                message=templates.build_factor_prompt(lookup.customer_name),
                category=category,
                required_action=in_progress,
            )

        if not isinstance(flow, VerifyingFlow):
            raise PreconditionViolation(f"No auth step for state {session.auth_state.value}")

        result = flow.verify(detect_factor(text), text)

        if result.outcome == VerificationOutcome.VERIFIED:
            if flow.factors_needed > 0:
                return ChatResponse(
                    message=templates.build_another_factor_prompt(flow.factors_needed),
                    category=category,
                    required_action=in_progress,
                )
            flow.complete()
            query = session.pending_query or ""
            session.pending_query = None
            return Redispatch(
                query=query, preface=templates.build_verified_prompt(session.customer_name)
            )

        if result.outcome == VerificationOutcome.RETRY:
            return ChatResponse(
                message=templates.build_retry_prompt(result.remaining_attempts),
                category=category,
                required_action=RequiredAction.AUTHENTICATION_FAILED,
            )

        if result.outcome == VerificationOutcome.LOCKED_OUT:
            question = session.pending_query or text
            session.pending_query = None
            response = await self._escalate(session, question, LOCKOUT_REASON, category)
            if response.ticket_id:
                response = response.model_copy(
                    update={"message": templates.build_lockout_message(response.ticket_id)}
                )
            return response

        logger.error("Verification could not run: %s", result.message)
        return await self._escalate(session, session.pending_query or text, SYSTEM_ERROR_REASON, category)

    # ------------------------------------------------------------------ #
    # Handoff
    # ------------------------------------------------------------------ #

    def _user_context(self, session: ConversationSession, summary: HandoffSummary) -> dict:
        return {
            "customer_id": session.customer_id,
            "customer_name": session.customer_name,
            "auth_state": session.auth_state.value,
            "original_question": summary.original_question,
            "key_facts": list(summary.key_facts),
        }

    async def _escalate(
        self,
        session: ConversationSession,
        question: str,
        reason: str,
        category: Optional[QuestionCategory] = None,
    ) -> ChatResponse:
        """Summarize, open a ticket and put the session in handoff mode. Never raises."""
        default_department = self._config.handoff.default_department
        try:
            summary = await self._summarizer.summarize(session.transcript(), reason, question)
        except Exception:
            logger.exception("Summarizer failed, using a minimal summary")
            summary = HandoffSummary(
                summary=f"Escalated because of {reason}. Customer asked: {question}",
                escalation_reason=reason,
                original_question=question,
                suggested_department=default_department,
            )

        department = summary.suggested_department or default_department
        try:
            ticket_id = self._tickets.create_ticket(
                session.session_id,
                summary.summary,
                reason,
                user_context=self._user_context(session, summary),
                history=session.conversation_history,
                department=department,
            )
        except Exception:
            logger.exception("Could not create handoff ticket")
            return ChatResponse(
                message=templates.build_handoff_failed_message(),
                category=category,
                required_action=RequiredAction.HUMAN_HANDOFF_NEEDED,
            )

        session.handoff_ticket_id = ticket_id
        session.handoff_state = HandoffState.WAITING_FOR_HUMAN
        logger.info("Escalated to ticket %s (%s)", ticket_id, reason)
        return ChatResponse(
            message=templates.build_handoff_message(ticket_id, department),
            category=category,
            required_action=RequiredAction.HUMAN_HANDOFF_NEEDED,
            ticket_id=ticket_id,
        )

    @staticmethod
    def _leave_handoff(session: ConversationSession) -> None:
        session.handoff_state = HandoffState.NONE
        session.handoff_ticket_id = None

    async def _continue_handoff(
        self,
        session: ConversationSession,
        text: str,
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[ChatResponse]:
        """Handle a message while a human owns the conversation.

        Returns None when the ticket was closed in the meantime and the
        message should be routed normally.
        """
        ticket_id = session.handoff_ticket_id
        ticket = self._tickets.get_ticket(ticket_id) if ticket_id else None

        if is_cancel_request(text):
            if ticket is not None:
                self._tickets.abandon(ticket.ticket_id)
            self._leave_handoff(session)
            return ChatResponse(
                message=templates.HANDOFF_CANCELLED,
                required_action=RequiredAction.HANDOFF_CANCELLED,
                ticket_id=ticket_id,
            )

        if ticket is None or not ticket.is_open:
            replies = self._tickets.drain_responses(ticket_id) if ticket is not None else []
            self._leave_handoff(session)
            if replies:
                return self._relay(session, ticket_id, replies)
            logger.info("Handoff ticket %s closed, back to automated help", ticket_id)
            return None

        self._tickets.append_customer_message(ticket.ticket_id, text)
        replies = self._tickets.drain_responses(ticket.ticket_id)
        if not replies:
            reply = await self._tickets.wait_for_response(
                ticket.ticket_id, self._config.handoff.wait_seconds, cancel_event
            )
            if reply is None:
                return ChatResponse(
                    message=templates.build_handoff_timeout_message(ticket.ticket_id),
                    required_action=RequiredAction.HANDOFF_TIMEOUT,
                    ticket_id=ticket.ticket_id,
                )
            replies = [reply]
        return self._relay(session, ticket.ticket_id, replies)

    def _relay(
        self, session: ConversationSession, ticket_id: Optional[str], replies: list[AgentResponse]
    ) -> ChatResponse:
        resolution = next((r.resolution for r in reversed(replies) if r.resolution), None)
        action = follow_up_for(resolution)
        if resolution is None or resolution == ResolutionKind.CONTINUE_CONVERSATION:
            session.handoff_state = HandoffState.HUMAN_CONVERSATION_ACTIVE
        else:
            self._leave_handoff(session)

        message = " ".join(templates.build_agent_message(r.agent_name, r.message) for r in replies)
        return ChatResponse(
            message=message, required_action=action, ticket_id=ticket_id, sender=Role.AGENT
        )
