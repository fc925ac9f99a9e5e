from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check.

    Returns:
        dict: {"status": "ok"} plus whether the chat endpoint has an LLM provider.
    """

    chat_service = request.app.state.chat_service
    return {"status": "ok", "llm_enabled": chat_service.llm is not None}
