from billing_assistant.agents.account_agent import ToolAccountDataResponder
from billing_assistant.agents.classifier import KeywordClassifier, LLMClassifier
from billing_assistant.agents.contracts import (
    AccountDataResponder,
    Classifier,
    FAQResponder,
    NextBestActionProvider,
    Summarizer,
)
from billing_assistant.agents.faq_agent import StaticFAQResponder
from billing_assistant.agents.next_best_action import CatalogNextBestAction, LLMNextBestAction
from billing_assistant.agents.registry import BUILTIN_PROVIDERS, ProviderRegistry
from billing_assistant.agents.summarizer import LLMSummarizer, TemplateSummarizer

__all__ = [
    "Classifier", "FAQResponder", "AccountDataResponder", "Summarizer",
    "NextBestActionProvider", "KeywordClassifier", "LLMClassifier",
    "StaticFAQResponder", "ToolAccountDataResponder", "TemplateSummarizer",
    "LLMSummarizer", "CatalogNextBestAction", "LLMNextBestAction",
    "BUILTIN_PROVIDERS", "ProviderRegistry",
]
