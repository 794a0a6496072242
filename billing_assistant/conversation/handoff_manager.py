"""
Human handoff ticket queue with bounded waits for agent replies.

Escalated conversations become tickets that human agents list, claim,
answer and resolve. The customer-facing flow can wait for the next agent
reply with a timeout and an optional cancellation event; only one waiter
per ticket may be outstanding at a time.

Usage:
    manager = HandoffTicketManager()
    ticket_id = manager.create_ticket("sess-1", summary, "customer requested human")
    manager.claim(ticket_id, "agent-7", "Dana")
    reply = await manager.wait_for_response(ticket_id, timeout=30.0)
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from billing_assistant.errors import HandoffError
from billing_assistant.logging_context import get_session_logger
from billing_assistant.schemas.handoff_schema import (
    AgentResponse,
    HandoffTicket,
    ResolutionKind,
    TicketStatus,
)
from billing_assistant.schemas.response_schema import RequiredAction
from billing_assistant.schemas.session_schema import Message, Role, utcnow

logger = get_session_logger(__name__)

FOLLOW_UP_BY_RESOLUTION: dict[ResolutionKind, RequiredAction] = {
    ResolutionKind.RESOLVED: RequiredAction.HANDOFF_RESOLVED,
    ResolutionKind.CONTINUE_CONVERSATION: RequiredAction.HUMAN_CONVERSATION_ACTIVE,
    ResolutionKind.TRANSFER_TO_SPECIALIST: RequiredAction.TRANSFER_TO_SPECIALIST,
    ResolutionKind.SCHEDULE_CALLBACK: RequiredAction.CALLBACK_SCHEDULED,
}

CLOSING_MESSAGES: dict[ResolutionKind, str] = {
    ResolutionKind.RESOLVED: "Your request has been resolved by our team.",
    ResolutionKind.TRANSFER_TO_SPECIALIST: "You're being transferred to a specialist.",
    ResolutionKind.SCHEDULE_CALLBACK: "A team member will call you back.",
}


def follow_up_for(resolution: Optional[ResolutionKind]) -> RequiredAction:
    """Map an agent's resolution to the signal returned to the transport."""
    if resolution is None:
        return RequiredAction.HUMAN_CONVERSATION_ACTIVE
    return FOLLOW_UP_BY_RESOLUTION[resolution]


def _new_ticket_id() -> str:
    return f"HO-{uuid.uuid4().hex[:6].upper()}"


class HandoffTicketManager:
    """
    Registry of escalation tickets, indexed by ticket id and by session id.

    A session has at most one open ticket. Agent replies either complete
    the current waiter or queue up until the customer flow drains them.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_ticket_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._tickets: dict[str, HandoffTicket] = {}
        self._by_session: dict[str, str] = {}
        self._waiters: dict[str, asyncio.Future] = {}
        self._outbox: dict[str, list[AgentResponse]] = {}

    def _require(self, ticket_id: str) -> HandoffTicket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise HandoffError(f"Unknown ticket: {ticket_id}")
        return ticket

    def _release_session(self, ticket: HandoffTicket) -> None:
        if self._by_session.get(ticket.session_id) == ticket.ticket_id:
            del self._by_session[ticket.session_id]

    def _deliver(self, response: AgentResponse) -> None:
        waiter = self._waiters.get(response.ticket_id)
        if waiter is not None and not waiter.done():
            waiter.set_result(response)
        else:
            self._outbox.setdefault(response.ticket_id, []).append(response)

    # ------------------------------------------------------------------ #
    # Queue
    # ------------------------------------------------------------------ #

    def create_ticket(
        self,
        session_id: str,
        summary: str,
        reason: str,
        user_context: Optional[dict[str, Any]] = None,
        history: Optional[Iterable[Message]] = None,
        department: Optional[str] = None,
    ) -> str:
        """Queue a Pending ticket, or return the session's open ticket if one exists."""
        existing_id = self._by_session.get(session_id)
        if existing_id is not None and self._tickets[existing_id].is_open:
            logger.info("Session %s already has open ticket %s", session_id, existing_id)
            return existing_id

        ticket_id = self._id_factory()
        self._tickets[ticket_id] = HandoffTicket(
            ticket_id=ticket_id,
            session_id=session_id,
            summary=summary,
            escalation_reason=reason,
            suggested_department=department,
            user_context=dict(user_context or {}),
            history=[m.model_copy() for m in history or []],
            created_at=self._clock(),
        )
        self._by_session[session_id] = ticket_id
        logger.info("Handoff ticket %s created for session %s (reason: %s)",
                    ticket_id, session_id, reason)
        return ticket_id

    def get_ticket(self, ticket_id: str) -> Optional[HandoffTicket]:
        return self._tickets.get(ticket_id)

    def get_ticket_for_session(self, session_id: str) -> Optional[HandoffTicket]:
        """Return the session's open ticket, if any."""
        ticket_id = self._by_session.get(session_id)
        return self._tickets.get(ticket_id) if ticket_id else None

    def list_pending(self) -> list[HandoffTicket]:
        """Pending tickets, oldest first."""
        pending = [t for t in self._tickets.values() if t.status == TicketStatus.PENDING]
        return sorted(pending, key=lambda t: t.created_at)

    # ------------------------------------------------------------------ #
    # Agent side
    # ------------------------------------------------------------------ #

    def claim(self, ticket_id: str, agent_id: str, agent_name: str) -> Optional[HandoffTicket]:
        """Assign a Pending ticket to an agent. Returns None if not claimable."""
        ticket = self._tickets.get(ticket_id)
        if ticket is None or ticket.status != TicketStatus.PENDING:
            logger.info("Ticket %s not claimable", ticket_id)
            return None

        ticket.status = TicketStatus.ACTIVE
        ticket.assigned_agent_id = agent_id
        ticket.assigned_agent_name = agent_name
        ticket.assigned_at = self._clock()
        logger.info("Ticket %s claimed by %s (%s)", ticket_id, agent_name, agent_id)
        return ticket

    def submit_response(self, response: AgentResponse) -> HandoffTicket:
        """Record an agent reply and hand it to the waiting customer flow."""
        ticket = self._require(response.ticket_id)
        if not ticket.is_open:
            raise HandoffError(f"Ticket {ticket.ticket_id} is {ticket.status.value}")

        ticket.history.append(
            Message(role=Role.AGENT, content=response.message, timestamp=response.created_at)
        )
        self._deliver(response)
        logger.debug("Agent response recorded on ticket %s", ticket.ticket_id)
        return ticket

    def resolve(
        self,
        ticket_id: str,
        resolution: ResolutionKind = ResolutionKind.RESOLVED,
        notes: Optional[str] = None,
    ) -> Optional[HandoffTicket]:
        """Close a ticket and free the session for a future escalation."""
        if resolution == ResolutionKind.CONTINUE_CONVERSATION:
            raise ValueError("CONTINUE_CONVERSATION does not close a ticket")

        ticket = self._tickets.get(ticket_id)
        if ticket is None or not ticket.is_open:
            return None

        ticket.status = TicketStatus.RESOLVED
        ticket.resolution = resolution
        ticket.resolution_notes = notes
        ticket.resolved_at = self._clock()
        self._release_session(ticket)

        message = notes or CLOSING_MESSAGES[resolution]
        ticket.history.append(Message(role=Role.SYSTEM, content=message))
        self._deliver(AgentResponse(
            ticket_id=ticket_id,
            message=message,
            agent_id=ticket.assigned_agent_id,
            agent_name=ticket.assigned_agent_name,
            resolution=resolution,
        ))
        logger.info("Ticket %s resolved (%s)", ticket_id, resolution.value)
        return ticket

    # ------------------------------------------------------------------ #
    # Customer side
    # ------------------------------------------------------------------ #

    def append_customer_message(self, ticket_id: str, content: str) -> Message:
        ticket = self._require(ticket_id)
        message = Message(role=Role.USER, content=content)
        ticket.history.append(message)
        return message

    def drain_responses(self, ticket_id: str) -> list[AgentResponse]:
        """Return and clear agent replies that arrived while nobody was waiting."""
        return self._outbox.pop(ticket_id, [])

    def abandon(self, ticket_id: str) -> Optional[HandoffTicket]:
        """Customer gave up waiting. The ticket is closed as Abandoned."""
        ticket = self._tickets.get(ticket_id)
        if ticket is None or not ticket.is_open:
            return None

        ticket.status = TicketStatus.ABANDONED
        ticket.resolved_at = self._clock()
        self._release_session(ticket)
        self._outbox.pop(ticket_id, None)
        waiter = self._waiters.get(ticket_id)
        if waiter is not None and not waiter.done():
            waiter.cancel()
        logger.info("Ticket %s abandoned by customer", ticket_id)
        return ticket

    def is_waiting(self, ticket_id: str) -> bool:
        return ticket_id in self._waiters

    async def wait_for_response(
        self,
        ticket_id: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[AgentResponse]:
        """
        Wait for the next agent reply on a ticket.

        Returns the submitted response, or None if ``timeout`` elapses or
        ``cancel_event`` is set first. The waiter slot is always released,
        including when the calling task itself is cancelled.

        Raises:
            HandoffError: Unknown ticket, or another waiter is outstanding.
        """
        self._require(ticket_id)
        if ticket_id in self._waiters:
            raise HandoffError(f"Ticket {ticket_id} already has a waiter")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters[ticket_id] = future
        cancel_task: Optional[asyncio.Task] = None
        waits: set = {future}
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waits.add(cancel_task)

        try:
            await asyncio.wait(waits, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            # A reply may land between the timeout firing and this task resuming
            if future.done() and not future.cancelled():
                return future.result()
            if cancel_task is not None and cancel_task.done():
                logger.info("Wait on ticket %s cancelled", ticket_id)
            else:
                logger.info("Wait on ticket %s timed out after %ss", ticket_id, timeout)
            return None
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if self._waiters.get(ticket_id) is future:
                del self._waiters[ticket_id]
            if not future.done():
                future.cancel()
