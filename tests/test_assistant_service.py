"""Unit tests for AssistantChatService with a mocked LLM client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.adapters.llm.base import AbstractLLMClient
from app.adapters.storage import JsonFileKeyValueStore
from app.core.errors import LLMAppError, LLMUnavailableAppError
from app.schemas.assistant import LearningsCandidate, PreferencesUpdate
from app.schemas.chat import ChatMessage
from app.services.assistant_service import AssistantChatService
from app.services.memory_service import AssistantMemoryService

USER = "user-123"

RAW_REPLY = """Here is your draft engagement letter.

LEARNINGS_CANDIDATE:
```json
{
  "observed_preferences": [
    {"key": "letter_signature", "value": "Managing Partner", "confidence": 0.92, "category": "defaults"}
  ],
  "corrections": [],
  "repeated_tasks": [],
  "failures_and_fixes": [],
  "suggestions_to_lock_in": [],
  "redact_notes": []
}
```"""


def _llm(reply: str = RAW_REPLY) -> MagicMock:
    llm = MagicMock(spec=AbstractLLMClient)
    llm.generate_text = AsyncMock(return_value=reply)
    return llm


def _messages(text: str = "Draft an engagement letter for the Smith matter") -> list[ChatMessage]:
    return [ChatMessage(role="user", content=text)]


class TestAssistantChatService:
    @pytest.mark.asyncio
    async def test_chat_applies_learnings_and_returns_clean_reply(self, memory_service) -> None:
        llm = _llm()
        service = AssistantChatService(memory_service, llm)

        turn = await service.chat(USER, _messages())

        assert turn.reply == "Here is your draft engagement letter."
        assert turn.applied is True
        assert turn.learnings is not None
        saved = memory_service.load_memory(USER)
        assert [(p.key, p.value) for p in saved.learned_preferences] == [("letter_signature", "Managing Partner")]

    @pytest.mark.asyncio
    async def test_chat_sends_memory_aware_system_prompt(self, memory_service) -> None:
        llm = _llm("Plain answer.")
        service = AssistantChatService(memory_service, llm)
        messages = [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello, how can I help?"),
            ChatMessage(role="user", content="List my deadlines"),
        ]

        await service.chat(USER, messages)

        system_prompt, sent = llm.generate_text.await_args.args
        assert "MEMORY CONTEXT:" in system_prompt
        assert "- Tone: balanced" in system_prompt
        assert sent == [m.model_dump() for m in messages]

    @pytest.mark.asyncio
    async def test_chat_without_block_applies_nothing(self, memory_service, store) -> None:
        service = AssistantChatService(memory_service, _llm("Plain answer."))

        turn = await service.chat(USER, _messages())

        assert turn.reply == "Plain answer."
        assert turn.learnings is None
        assert turn.applied is False
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_chat_skips_learnings_when_auto_apply_disabled(self, memory_service) -> None:
        profile = memory_service.load_memory(USER)
        profile.preferences.auto_apply_learnings = False
        memory_service.save_memory(profile)
        service = AssistantChatService(memory_service, _llm())

        turn = await service.chat(USER, _messages())

        assert turn.applied is False
        assert turn.learnings is not None
        assert memory_service.load_memory(USER).learned_preferences == []

    @pytest.mark.asyncio
    async def test_chat_skips_learnings_when_turn_matches_redaction_pattern(self, memory_service) -> None:
        memory_service.apply_and_save(
            USER,
            LearningsCandidate.model_validate({"redact_notes": [{"reason": "private", "pattern": "Smith Matter"}]}),
        )
        service = AssistantChatService(memory_service, _llm())

        turn = await service.chat(USER, _messages())

        assert turn.applied is False
        assert memory_service.load_memory(USER).learned_preferences == []

    @pytest.mark.asyncio
    async def test_chat_does_not_persist_for_opted_out_user(self, memory_service, store) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))
        service = AssistantChatService(memory_service, _llm())

        turn = await service.chat(USER, _messages())

        assert turn.applied is False
        assert turn.reply == "Here is your draft engagement letter."
        assert store.get(memory_service.storage_key(USER)) is None
        reloaded = memory_service.load_memory(USER)
        assert reloaded.preferences.store_interactions is False
        assert reloaded.learned_preferences == []

    @pytest.mark.asyncio
    async def test_chat_learns_again_after_opting_back_in(self, memory_service) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=True))
        service = AssistantChatService(memory_service, _llm())

        turn = await service.chat(USER, _messages())

        assert turn.applied is True
        assert [p.key for p in memory_service.load_memory(USER).learned_preferences] == ["letter_signature"]

    @pytest.mark.asyncio
    async def test_chat_round_trips_through_file_store(self, tmp_path) -> None:
        path = tmp_path / "store.json"
        service = AssistantChatService(AssistantMemoryService(JsonFileKeyValueStore(path)), _llm())

        turn = await service.chat(USER, _messages())

        assert turn.applied is True
        reopened = AssistantMemoryService(JsonFileKeyValueStore(path))
        assert [p.key for p in reopened.load_memory(USER).learned_preferences] == ["letter_signature"]

    @pytest.mark.asyncio
    async def test_chat_without_llm_raises_unavailable(self, memory_service) -> None:
        service = AssistantChatService(memory_service, None)

        with pytest.raises(LLMUnavailableAppError) as exc:
            await service.chat(USER, _messages())
        assert exc.value.code == "llm_not_configured"

    @pytest.mark.asyncio
    async def test_chat_propagates_llm_errors(self, memory_service, store) -> None:
        llm = _llm()
        llm.generate_text.side_effect = LLMAppError(code="llm_request_failed", message="boom")
        service = AssistantChatService(memory_service, llm)

        with pytest.raises(LLMAppError):
            await service.chat(USER, _messages())
        assert len(store) == 0
