"""Pydantic schemas for the assistant memory profile and learnings candidates.

Profiles serialize with camelCase keys, the format the front end stores and
exports. The learnings candidate keeps snake_case top-level keys because that
is the block the model is asked to emit.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MEMORY_VERSION = "1.0.0"

Tone = Literal["concise", "detailed", "balanced"]
PreferenceCategory = Literal["tone", "workflow", "defaults", "format", "other"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObservedPreference(CamelModel):
    """A preference inferred from the conversation, with a 0-1 confidence."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    key: str
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    observed_at: str | None = None
    category: PreferenceCategory = "other"


class UserCorrection(CamelModel):
    original_action: str
    corrected_action: str
    context: str
    timestamp: str | None = None


class RepeatedTask(CamelModel):
    task_type: str
    pattern: str
    frequency: int = Field(1, ge=0)
    last_occurrence: str | None = None
    suggested_automation: str | None = None


class FailureAndFix(CamelModel):
    failure_type: str
    solution: str
    timestamp: str | None = None
    prevention_rule: str | None = None


class SuggestionToLockIn(CamelModel):
    suggestion: str
    benefit: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    requires_confirmation: bool = True


class RedactNote(CamelModel):
    reason: str = ""
    pattern: str
    timestamp: str | None = None


class CustomWorkflow(CamelModel):
    name: str
    steps: list[str] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)


class LearningsCandidate(BaseModel):
    """Structured batch of proposed profile updates extracted from a reply.

    Missing lists default to empty so a partial block still parses.
    """

    observed_preferences: list[ObservedPreference] = Field(default_factory=list)
    corrections: list[UserCorrection] = Field(default_factory=list)
    repeated_tasks: list[RepeatedTask] = Field(default_factory=list)
    failures_and_fixes: list[FailureAndFix] = Field(default_factory=list)
    suggestions_to_lock_in: list[SuggestionToLockIn] = Field(default_factory=list)
    redact_notes: list[RedactNote] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (
                self.observed_preferences,
                self.corrections,
                self.repeated_tasks,
                self.failures_and_fixes,
                self.suggestions_to_lock_in,
                self.redact_notes,
            )
        )


class AssistantPreferences(CamelModel):
    """User-controlled assistant behaviour."""

    tone: Tone = "balanced"
    confirmation_threshold: float = Field(0.7, ge=0.0, le=1.0)
    auto_apply_learnings: bool = True
    # Privacy gate: when False nothing about this user is persisted.
    store_interactions: bool = True


class AssistantMemory(CamelModel):
    """Per-user learning profile."""

    version: str = MEMORY_VERSION
    user_id: str
    last_updated: str

    preferences: AssistantPreferences = Field(default_factory=AssistantPreferences)

    learned_preferences: list[ObservedPreference] = Field(default_factory=list)
    user_corrections: list[UserCorrection] = Field(default_factory=list)
    repeated_tasks: list[RepeatedTask] = Field(default_factory=list)

    default_values: dict[str, Any] = Field(default_factory=dict)
    custom_workflows: list[CustomWorkflow] = Field(default_factory=list)

    redaction_patterns: list[str] = Field(default_factory=list)
    opted_out_categories: list[str] = Field(default_factory=list)


def create_default_memory(user_id: str, last_updated: str) -> AssistantMemory:
    """Build an empty profile with default preferences."""

    return AssistantMemory(user_id=user_id, last_updated=last_updated)


class PreferencesUpdate(BaseModel):
    """Partial update of AssistantPreferences; unset fields are left alone."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    tone: Tone | None = None
    confirmation_threshold: float | None = Field(None, ge=0.0, le=1.0)
    auto_apply_learnings: bool | None = None
    store_interactions: bool | None = None
