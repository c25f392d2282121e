"""
Assistant routing for the civic chat.

Messages are matched against CANNED_RULES top to bottom; the first rule with
a keyword contained in the lower-cased message wins and its fixed reply is
returned without contacting the model. Anything else goes to the generative
model with the civic persona instruction.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from janmitra.errors import ExternalServiceError, InputError
from janmitra.schemas import GenerateContentResponse

logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION = (
    "You are a helpful and polite Civic AI Assistant for the JanMitra platform. "
    "Keep answers brief and encouraging."
)

NO_REPLY_PLACEHOLDER = "⚠ No reply received from the AI model."

DEFAULT_MODEL_ERROR = "Gemini API request failed."


@dataclass(frozen=True)
class CannedRule:
    name: str
    keywords: tuple[str, ...]
    reply: str

    def matches(self, normalized_message: str) -> bool:
        return any(keyword in normalized_message for keyword in self.keywords)


# Order is significant: a message matching several rules gets the first one.
CANNED_RULES: tuple[CannedRule, ...] = (
    CannedRule(
        name="greeting",
        keywords=("hello", "hi", "hey"),
        reply="👋 Hello! I'm your Civic Assistant. How can I help you report an issue today?",
    ),
    CannedRule(
        name="status",
        keywords=("status", "track"),
        reply=(
            "To check the status of a report, please use the **Admin Dashboard** link "
            "in the navigation bar. You will need the Ticket ID to track it!"
        ),
    ),
    CannedRule(
        name="gratitude",
        keywords=("thank you", "thanks"),
        reply=(
            "You're very welcome! Thank you for helping keep our community clean and safe. "
            "Is there anything else I can assist with?"
        ),
    ),
    CannedRule(
        name="emergency",
        keywords=("emergency", "police"),
        reply=(
            "🚨 **If this is an emergency, please call 100 immediately.** "
            "This platform is for non-urgent civic reports."
        ),
    ),
)


def match_canned_rule(message: str, rules: tuple[CannedRule, ...] = CANNED_RULES) -> Optional[CannedRule]:
    """Return the first rule matching the message, or None."""
    normalized = message.lower()
    for rule in rules:
        if rule.matches(normalized):
            return rule
    return None


class ModelClient(Protocol):
    async def generate(self, message: str, system_instruction: str) -> GenerateContentResponse: ...


@dataclass(frozen=True)
class ChatReply:
    text: str
    source: str  # "canned" or "model"
    rule: Optional[str] = None


class AssistantRouter:
    def __init__(self, model_client: ModelClient, rules: tuple[CannedRule, ...] = CANNED_RULES):
        self.model_client = model_client
        self.rules = rules

    async def reply(self, message: Optional[str]) -> ChatReply:
        """
        Answer a chat message.

        Raises:
            InputError: message is missing or empty
            ExternalServiceError: the model answered with an error payload
            ExternalServiceUnavailable: the model could not be reached
        """
        if not message:
            raise InputError("Message required")

        rule = match_canned_rule(message, self.rules)
        if rule is not None:
            logger.info(f"Canned reply: {rule.name}")
            return ChatReply(text=rule.reply, source="canned", rule=rule.name)

        response = await self.model_client.generate(message, SYSTEM_INSTRUCTION)

        if response.error is not None:
            logger.error(f"Gemini API Error: {response.error.model_dump(exclude_none=True)}")
            raise ExternalServiceError(
                status_code=response.error.code or 500,
                message=response.error.message or DEFAULT_MODEL_ERROR,
            )

        text = response.first_text()
        if not text:
            logger.warning("Gemini response carried no reply text")
            text = NO_REPLY_PLACEHOLDER

        return ChatReply(text=text, source="model")
