"""
Offline console demo: billing support conversations without any API keys.

Runs the real router, authentication state machine, session manager and
handoff queue with the offline providers (keyword classifier, static FAQ,
account-data tools, template summarizer and catalog follow-up suggestions).
No LLM and no network calls unless ``main.py --llm`` is used.

Usage:
    python console_demo.py
    python console_demo.py --scenario balance
    python console_demo.py --scenario lockout
    python console_demo.py --scenario handoff
"""

import argparse
import asyncio
import dataclasses
import uuid
from typing import Optional

from billing_assistant.agents.registry import ProviderRegistry
from billing_assistant.config import AppConfig, HandoffConfig, settings
from billing_assistant.conversation.handoff_manager import HandoffTicketManager
from billing_assistant.conversation.router import ConversationRouter
from billing_assistant.conversation.session_manager import SessionManager
from billing_assistant.conversation.session_store import InMemorySessionStore, SqliteSessionStore
from billing_assistant.schemas.handoff_schema import AgentResponse, ResolutionKind
from billing_assistant.schemas.response_schema import ChatResponse, RequiredAction
from billing_assistant.schemas.session_schema import Role
from billing_assistant.tools.customer import InMemoryIdentityStore

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_AGENT_ID = "agent-007"
DEMO_AGENT_NAME = "Dana"


def build_router(
    use_llm: bool = False,
    db_path: Optional[str] = None,
    config: Optional[AppConfig] = None,
    providers: Optional[ProviderRegistry] = None,
) -> tuple[ConversationRouter, HandoffTicketManager]:
    """Wire the router with its collaborators. Returns the router and ticket queue."""
    config = config or settings
    providers = providers or ProviderRegistry()
    identity_store = InMemoryIdentityStore()
    store = SqliteSessionStore(db_path) if db_path else InMemorySessionStore()
    tickets = HandoffTicketManager()

    if use_llm:
        from billing_assistant.agents.llm import create_client

        client = create_client()
        classifier = providers.create("llm_classifier", client=client, config=config.model)
        summarizer = providers.create(
            "llm_summarizer", client=client, config=config.model, handoff_config=config.handoff
        )
        next_best_action = providers.create(
            "llm_next_best_action", client=client, config=config.model
        )
    else:
        classifier = providers.create("keyword_classifier")
        summarizer = providers.create("template_summarizer", config=config.handoff)
        next_best_action = providers.create("catalog_next_best_action")

    router = ConversationRouter(
        sessions=SessionManager(store, config=config.session),
        tickets=tickets,
        identity_store=identity_store,
        classifier=classifier,
        faq=providers.create("static_faq"),
        account_data=providers.create("account_data", identity_store=identity_store),
        summarizer=summarizer,
        next_best_action=next_best_action,
        config=config,
    )
    return router, tickets


class ConsoleSession:
    """Drives one conversation through the router in the terminal."""

    # ("customer", text) is a customer message; ("agent", text) is a human
    # agent claiming the open ticket and replying; ("resolve", notes) closes it.
    SCENARIOS: dict[str, list[tuple[str, str]]] = {
        "balance": [
            ("customer", "What is my current balance?"),
            ("customer", "555-1234"),
            ("customer", "1234"),
            ("customer", "When is my bill due?"),
        ],
        "lockout": [
            ("customer", "Did you receive my payment?"),
            ("customer", "555-1234"),
            ("customer", "0000"),
            ("customer", "1111"),
            ("customer", "2222"),
        ],
        "faq": [
            ("customer", "How can I pay my bill?"),
            ("customer", "What happens if I pay late?"),
            ("customer", "What's the weather like tomorrow?"),
        ],
        "handoff": [
            ("customer", "I need to set up a payment arrangement"),
            ("agent", "Hi, this is Dana from billing. I can help set that up."),
            ("customer", "Great, can I split it over three months?"),
            ("resolve", "Your 3-month payment arrangement is set up."),
            ("customer", "Thanks! How do I enroll in autopay?"),
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(
        self,
        router: Optional[ConversationRouter] = None,
        tickets: Optional[HandoffTicketManager] = None,
        session_id: Optional[str] = None,
    ) -> None:
        if router is None or tickets is None:
            demo_config = dataclasses.replace(
                settings,
                handoff=HandoffConfig(
                    wait_seconds=2.0,
                    default_department=settings.handoff.default_department,
                ),
            )
            router, tickets = build_router(config=demo_config)
        self.router = router
        self.tickets = tickets
        self.session_id = session_id or f"console-{uuid.uuid4().hex[:8]}"
        self.last_ticket_id: Optional[str] = None

    def assistant_say(self, response: ChatResponse) -> None:
        label = "Agent" if response.sender == Role.AGENT else "Assistant"
        colour = YELLOW if response.sender == Role.AGENT else GREEN
        print(f"{colour}{BOLD}[{label}]{RESET} {colour}{response.message}{RESET}")
        for suggestion in response.suggested_actions:
            print(f"{DIM}  You could also ask: {suggestion.suggested_question}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _log_state(self, response: ChatResponse) -> None:
        session = self.router_session()
        parts = [f"action: {response.required_action.value}"]
        if response.category:
            parts.append(f"category: {response.category.value}")
        if session is not None:
            parts.append(f"auth: {session.auth_state.value}")
            parts.append(f"handoff: {session.handoff_state.value}")
        if response.ticket_id:
            parts.append(f"ticket: {response.ticket_id}")
        self.system_log(" | ".join(parts))

    def router_session(self):
        return self.router.sessions.cached(self.session_id)

    async def send(self, text: str) -> ChatResponse:
        response = await self.router.handle_message(self.session_id, text)
        if response.ticket_id:
            self.last_ticket_id = response.ticket_id
        self.assistant_say(response)
        self._log_state(response)
        return response

    def agent_reply(self, text: str) -> None:
        ticket_id = self.last_ticket_id
        if ticket_id is None:
            self.system_log("No ticket to reply on")
            return
        ticket = self.tickets.get_ticket(ticket_id)
        if ticket is None or not ticket.is_open:
            self.system_log(f"Ticket {ticket_id} is closed")
            return
        if ticket.assigned_agent_id is None:
            self.tickets.claim(ticket_id, DEMO_AGENT_ID, DEMO_AGENT_NAME)
            self.system_log(f"{DEMO_AGENT_NAME} claimed ticket {ticket_id}")
        self.tickets.submit_response(AgentResponse(
            ticket_id=ticket_id, message=text,
            agent_id=DEMO_AGENT_ID, agent_name=DEMO_AGENT_NAME,
        ))
        self.system_log(f"{DEMO_AGENT_NAME} replied on {ticket_id}")

    def agent_resolve(self, notes: str) -> None:
        if self.last_ticket_id is None:
            self.system_log("No ticket to resolve")
            return
        self.tickets.resolve(self.last_ticket_id, ResolutionKind.RESOLVED, notes)
        self.system_log(f"{DEMO_AGENT_NAME} resolved ticket {self.last_ticket_id}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BILLING ASSISTANT - {title}{RESET}")
        print(f"{BOLD}  Utility: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for kind, text in steps:
            if kind == "agent":
                self.agent_reply(text)
                continue
            if kind == "resolve":
                self.agent_resolve(text)
                continue
            print(f"\n{BLUE}[Customer] {RESET}{text}")
            await self.send(text)

        session = self.router_session()
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        if session is not None:
            print(f"{DIM}  Messages in history: {len(session.conversation_history)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo")
        print(f"{DIM}Type 'quit' to exit. Test phones: 555-1234, 555-5678, 555-9999.{RESET}")
        print(f"{DIM}Agent commands: '/reply <text>', '/resolve <notes>', '/pending'.{RESET}")

        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if user_input.startswith("/reply "):
                self.agent_reply(user_input[len("/reply "):])
                continue
            if user_input.startswith("/resolve"):
                self.agent_resolve(user_input[len("/resolve"):].strip() or "")
                continue
            if user_input == "/pending":
                for ticket in self.tickets.list_pending():
                    self.system_log(f"{ticket.ticket_id}: {ticket.summary}")
                continue
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{GREEN}That was quite long. Could you keep it brief for me?{RESET}")
                continue

            response = await self.send(user_input)
            if response.required_action == RequiredAction.HUMAN_HANDOFF_NEEDED:
                self.system_log("Use /reply to answer as the human agent")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
