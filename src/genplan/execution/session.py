"""Conversational session with explicit lifetime."""

from typing import Any, Optional

from genplan.ai_providers.base import BaseProvider, ModelTier
from genplan.utils.logger import get_logger

from .errors import Result
from .interpreter import interpret_text
from .invoker import ModelInvoker

logger = get_logger(__name__)

MENTOR_SYSTEM_INSTRUCTION = (
    'You are "Athena", an expert AI Marketing Mentor for authors. Your goal is to provide '
    "concise, actionable, and encouraging advice to help authors market their books "
    "effectively. Keep your tone professional yet friendly. When asked for ideas, provide "
    "them in a clear, easy-to-scan format like bullet points."
)


class SessionClosedError(RuntimeError):
    """Raised when a message is sent on a session that was closed."""


class ChatSession:
    """A multi-turn chat owned by its caller.

    Usage:
        async with await ChatSession.open(provider) as session:
            reply = await session.send("How should I price my ebook?")
    """

    def __init__(self, provider: BaseProvider, chat: Any, invoker: Optional[ModelInvoker] = None):
        self.provider = provider
        self.invoker = invoker or ModelInvoker()
        self._chat = chat
        self.turns = 0

    @classmethod
    async def open(
        cls,
        provider: BaseProvider,
        system_instruction: str = MENTOR_SYSTEM_INSTRUCTION,
        tier: ModelTier = ModelTier.flash,
        invoker: Optional[ModelInvoker] = None,
    ) -> "ChatSession":
        chat = await provider.create_chat(system_instruction, tier)
        logger.debug(f"Opened chat session on tier {tier.value}")
        return cls(provider, chat, invoker)

    @property
    def closed(self) -> bool:
        return self._chat is None

    async def send(self, message: str) -> Result[str]:
        if self._chat is None:
            raise SessionClosedError("Chat session is closed")
        chat = self._chat
        result = await self.invoker.invoke(
            lambda: self.provider.send_chat_message(chat, message), "Chat"
        )
        if not result.ok:
            return result
        self.turns += 1
        return interpret_text(result.value)

    async def close(self) -> None:
        if self._chat is not None:
            logger.debug(f"Closing chat session after {self.turns} turns")
        self._chat = None

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
