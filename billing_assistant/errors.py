"""Exception hierarchy for the billing assistant core.

Expected conversational outcomes (wrong answer, lookup miss, handoff
timeout) are return values, not exceptions. These are for contract
violations and integrity problems.
"""


class BillingAssistantError(Exception):
    """Base class for all billing assistant errors."""


class PreconditionViolation(BillingAssistantError):
    """A caller contract was broken, e.g. account data requested before authentication."""


class InvalidTransitionError(BillingAssistantError):
    """Raised when a transition is not valid from the current state."""


class HandoffError(BillingAssistantError):
    """Unknown ticket or a second concurrent waiter on the same ticket."""


class SessionCorruptError(BillingAssistantError):
    """A stored session could not be deserialized."""


class ProviderError(BillingAssistantError):
    """An answer provider returned something that could not be used."""
