"""
FAQ responder: answers general billing questions from the knowledge base.

Never touches account data, so it is safe to call before verification.
"""

import logging

from billing_assistant.schemas.response_schema import ProviderAnswer
from billing_assistant.tools.faq import get_topic, match_topic

logger = logging.getLogger(__name__)

NO_ANSWER = "I don't have information about that specific topic."


class StaticFAQResponder:
    """Looks the question up in the static knowledge base."""

    async def answer(self, message: str) -> ProviderAnswer:
        topic_id = match_topic(message)
        topic = get_topic(topic_id) if topic_id else None
        if topic is None:
            logger.info("FAQ miss")
            return ProviderAnswer(text=NO_ANSWER, found=False)

        logger.info("FAQ answered from topic %s", topic_id)
        return ProviderAnswer(text=topic["answer"])
