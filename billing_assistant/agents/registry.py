"""
Provider registry: answer providers created by name.

Entry points pick offline or model-backed providers from configuration
without importing every implementation themselves. The built-in table is
read-only; each wiring site builds its own ``ProviderRegistry`` and may
add providers to that instance only.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from billing_assistant.agents.account_agent import ToolAccountDataResponder
from billing_assistant.agents.classifier import KeywordClassifier, LLMClassifier
from billing_assistant.agents.faq_agent import StaticFAQResponder
from billing_assistant.agents.next_best_action import CatalogNextBestAction, LLMNextBestAction
from billing_assistant.agents.summarizer import LLMSummarizer, TemplateSummarizer

logger = logging.getLogger(__name__)

BUILTIN_PROVIDERS: Mapping[str, Callable[..., Any]] = MappingProxyType({
    "keyword_classifier": KeywordClassifier,
    "llm_classifier": LLMClassifier,
    "static_faq": StaticFAQResponder,
    "account_data": ToolAccountDataResponder,
    "template_summarizer": TemplateSummarizer,
    "llm_summarizer": LLMSummarizer,
    "catalog_next_best_action": CatalogNextBestAction,
    "llm_next_best_action": LLMNextBestAction,
})


class ProviderRegistry:
    """Provider factories by name, starting from the built-ins."""

    def __init__(self, factories: Optional[Mapping[str, Callable[..., Any]]] = None) -> None:
        self._factories: dict[str, Callable[..., Any]] = dict(
            BUILTIN_PROVIDERS if factories is None else factories
        )

    def register(self, name: str, factory: Callable[..., Any]) -> None:
        self._factories[name] = factory
        logger.debug("Provider registered: %s", name)

    def create(self, name: str, **kwargs: Any) -> Any:
        """Create a provider instance by registered name.

        Raises:
            KeyError: If the provider name is not registered.
        """
        factory = self._factories.get(name)
        if factory is None:
            raise KeyError(f"Provider '{name}' not registered. Available: {self.names()}")
        return factory(**kwargs)

    def names(self) -> list[str]:
        return list(self._factories)
