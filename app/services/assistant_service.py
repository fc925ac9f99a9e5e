"""Assistant chat service orchestrating memory and the LLM provider.

One chat turn:
1. Load the user's memory profile and build the memory-aware system prompt
2. Call the LLM with the system prompt + conversation
3. Split the raw reply into the user-visible text and the learnings block
4. Merge and save the learnings when the user has auto-apply enabled and the
   turn does not touch a redaction pattern
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.llm.base import AbstractLLMClient
from app.core.errors import LLMUnavailableAppError
from app.core.logging import hash_for_log
from app.schemas.chat import ChatMessage, ChatTurn
from app.services.memory_service import AssistantMemoryService

logger = logging.getLogger(__name__)


class AssistantChatService:
    """Run assistant chat turns with per-user memory.

    Attributes:
        memory: Memory service used to load, render and update profiles.
        llm: LLM client, or None when no provider is configured.
    """

    def __init__(self, memory: AssistantMemoryService, llm: AbstractLLMClient | None) -> None:
        self.memory = memory
        self.llm = llm

    async def chat(self, user_id: str, messages: list[ChatMessage]) -> ChatTurn:
        """Answer the latest message and learn from the reply.

        Args:
            user_id: Owner of the memory profile.
            messages: Conversation so far, oldest first.

        Returns:
            ChatTurn with the cleaned reply and the parsed learnings.

        Raises:
            LLMUnavailableAppError: If no LLM provider is configured.
            LLMAppError: If the provider call fails.
        """
        if self.llm is None:
            raise LLMUnavailableAppError(
                code="llm_not_configured",
                message="No assistant provider is configured",
            )

        # Store calls may hit disk (JSON file backend); keep them off the event loop
        loop = asyncio.get_event_loop()
        profile = await loop.run_in_executor(None, self.memory.load_memory, user_id)
        system_prompt = self.memory.get_system_prompt_with_memory(profile)

        raw_reply = await self.llm.generate_text(
            system_prompt,
            [message.model_dump() for message in messages],
        )

        learnings = self.memory.parse_learnings_candidate(raw_reply)
        reply = self.memory.extract_clean_response(raw_reply)

        applied = False
        if learnings is not None and not learnings.is_empty() and profile.preferences.auto_apply_learnings:
            user_turns = " ".join(m.content for m in messages if m.role == "user")
            if self.memory.should_redact(user_turns, profile):
                logger.info(
                    "assistant.learnings_redacted",
                    extra={"user_hash": hash_for_log(user_id)},
                )
            else:
                updated = self.memory.apply_learnings(profile, learnings)
                applied = await loop.run_in_executor(None, self.memory.save_memory, updated)

        logger.info(
            "assistant.turn_completed",
            extra={
                "user_hash": hash_for_log(user_id),
                "message_count": len(messages),
                "reply_chars": len(reply),
                "has_learnings": learnings is not None,
                "learnings_applied": applied,
            },
        )

        return ChatTurn(reply=reply, learnings=learnings, applied=applied)
