"""Pydantic schemas for the assistant chat endpoint."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.assistant import LearningsCandidate


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Conversation so far, oldest first; the last message is the user's turn."""

    messages: list[ChatMessage] = Field(..., min_length=1)


class ChatTurn(BaseModel):
    """Assistant reply with the learnings block stripped out."""

    reply: str = Field(..., description="Assistant reply shown to the user.")
    learnings: LearningsCandidate | None = Field(
        None,
        description="Learnings block parsed from the raw reply, if any.",
    )
    applied: bool = Field(
        False,
        description="True if the learnings were merged into the saved profile.",
    )


class ReplyParseRequest(BaseModel):
    """Raw assistant reply produced by a caller-side LLM call."""

    text: str
