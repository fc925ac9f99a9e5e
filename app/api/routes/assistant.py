from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import get_chat_service, get_memory_service
from app.core.rate_limit import enforce_api_rate_limit
from app.schemas.assistant import AssistantMemory, LearningsCandidate, PreferencesUpdate
from app.schemas.chat import ChatRequest, ChatTurn, ReplyParseRequest
from app.services.assistant_service import AssistantChatService
from app.services.memory_service import AssistantMemoryService

router = APIRouter(
    prefix="/assistant/{user_id}",
    tags=["Assistant"],
    dependencies=[Depends(enforce_api_rate_limit)],
)

Memory = Annotated[AssistantMemoryService, Depends(get_memory_service)]


@router.get("/memory", response_model=AssistantMemory)
def get_memory(user_id: str, memory: Memory) -> AssistantMemory:
    """Return the user's profile, or a default one if nothing is stored."""
    return memory.load_memory(user_id)


@router.get("/memory/export")
def export_memory(user_id: str, memory: Memory) -> Response:
    """Download the full profile as a JSON attachment."""
    return Response(
        content=memory.export_memory(user_id),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="assistant-memory.json"'},
    )


@router.delete("/memory", status_code=status.HTTP_204_NO_CONTENT)
def clear_memory(user_id: str, memory: Memory) -> Response:
    memory.clear_memory(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/preferences", response_model=AssistantMemory)
def update_preferences(user_id: str, update: PreferencesUpdate, memory: Memory) -> AssistantMemory:
    """Change tone, threshold, auto-apply or the storage opt-out.

    Setting storeInteractions to false deletes the stored profile.
    """
    return memory.update_preferences(user_id, update)


@router.post("/learnings", response_model=AssistantMemory)
def apply_learnings(user_id: str, learnings: LearningsCandidate, memory: Memory) -> AssistantMemory:
    """Merge a learnings candidate into the stored profile and save it."""
    return memory.apply_and_save(user_id, learnings)


@router.post("/learnings/parse", response_model=ChatTurn)
def parse_reply(user_id: str, body: ReplyParseRequest, memory: Memory) -> ChatTurn:
    """Split a raw model reply into visible text and its learnings block.

    Nothing is saved; callers post the learnings back to /learnings once the
    user has confirmed them.
    """
    return ChatTurn(
        reply=memory.extract_clean_response(body.text),
        learnings=memory.parse_learnings_candidate(body.text),
        applied=False,
    )


@router.get("/system-prompt")
def get_system_prompt(user_id: str, memory: Memory) -> dict:
    """Return the memory-aware system prompt for a caller-side LLM call."""
    profile = memory.load_memory(user_id)
    return {"system_prompt": memory.get_system_prompt_with_memory(profile)}


@router.post("/chat", response_model=ChatTurn)
async def chat(
    user_id: str,
    body: ChatRequest,
    chat_service: Annotated[AssistantChatService, Depends(get_chat_service)],
) -> ChatTurn:
    """Run one assistant turn with memory and learn from the reply.

    Raises:
        LLMUnavailableAppError: 503 when no provider is configured.
        LLMAppError: 502 when the provider call fails.
    """
    return await chat_service.chat(user_id, body.messages)
