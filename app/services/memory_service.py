"""Assistant memory service: per-user learning profiles.

This service owns the lifecycle of an AssistantMemory profile and mediates
between free-form assistant text and the structured profile:
- Load/save/clear/export through the Local Store (best effort, never raises)
- Merge learnings candidates under confidence and recency rules
- Render the profile into the assistant's system prompt
- Parse and strip the LEARNINGS_CANDIDATE block from model replies

Merge rules are deliberately asymmetric: re-applying the same candidate is a
no-op for preferences and redaction patterns, but appends corrections and
bumps task frequencies again.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from app.adapters.storage.base import AbstractKeyValueStore
from app.core.clock import Clock, ms_to_iso, now_ms
from app.core.logging import hash_for_log
from app.schemas.assistant import (
    MEMORY_VERSION,
    AssistantMemory,
    LearningsCandidate,
    PreferencesUpdate,
    create_default_memory,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "docketchief_assistant_memory"

MAX_CORRECTIONS = 50
MAX_PROMPT_PREFERENCES = 10
MAX_PROMPT_CORRECTIONS = 5
MAX_PROMPT_TASKS = 5

LEARNINGS_MARKER = "LEARNINGS_CANDIDATE:"
_LEARNINGS_BLOCK_RE = re.compile(r"LEARNINGS_CANDIDATE:\s*```json\s*(\{[\s\S]*?\})\s*```")

_TONE_INSTRUCTIONS = {
    "concise": "extremely concise",
    "detailed": "thorough and detailed",
    "balanced": "balanced and efficient",
}

_LEARNINGS_SCHEMA = """{
  "observed_preferences": [],
  "corrections": [],
  "repeated_tasks": [],
  "failures_and_fixes": [],
  "suggestions_to_lock_in": [],
  "redact_notes": []
}"""


def _format_number(value: float) -> str:
    """Render 0.7 as "0.7" and 1.0 as "1"."""
    return f"{value:g}"


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


class AssistantMemoryService:
    """Load, merge, render and persist assistant memory profiles.

    Attributes:
        store: Local Store holding one JSON document per user.
        namespace: Storage key prefix; profiles live at "<namespace>_<user_id>".
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        clock: Clock = now_ms,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.store = store
        self.namespace = namespace
        self._clock = clock

    def storage_key(self, user_id: str) -> str:
        return f"{self.namespace}_{user_id}"

    def opt_out_key(self, user_id: str) -> str:
        """Key of the opt-out marker; ":" keeps it apart from every profile key."""
        return f"{self.namespace}:opted_out:{user_id}"

    def _now_iso(self) -> str:
        return ms_to_iso(self._clock())

    # Persistence

    def load_memory(self, user_id: str) -> AssistantMemory:
        """Load the profile for user_id, falling back to a fresh default.

        A missing, unreadable or invalid document yields a default profile.
        A document with another schema version is discarded (see
        _migrate_memory). A user who opted out gets a default profile with
        store_interactions off, so nothing is saved until they opt back in.

        Args:
            user_id: Owner of the profile.

        Returns:
            The stored profile or a new default one. Never raises.
        """
        try:
            if self.store.get(self.opt_out_key(user_id)):
                return self._opted_out_memory(user_id)

            stored = self.store.get(self.storage_key(user_id))
            if not stored:
                return create_default_memory(user_id, self._now_iso())

            payload = json.loads(stored)
            version = payload.get("version") if isinstance(payload, dict) else None
            if version != MEMORY_VERSION:
                logger.warning(
                    "memory.version_mismatch",
                    extra={
                        "user_hash": hash_for_log(user_id),
                        "stored_version": version,
                        "current_version": MEMORY_VERSION,
                    },
                )
                return self._migrate_memory(payload, user_id)

            return AssistantMemory.model_validate(payload)
        except Exception as exc:  # noqa: BLE001 - load fails open to a default profile
            logger.error(
                "memory.load_failed",
                extra={"user_hash": hash_for_log(user_id), "error_type": type(exc).__name__},
            )
            return create_default_memory(user_id, self._now_iso())

    def save_memory(self, memory: AssistantMemory) -> bool:
        """Persist memory unless the user opted out of storing interactions.

        Stamps memory.last_updated in place before writing.

        Returns:
            True if the profile was written, False if skipped or the write failed.
        """
        if not memory.preferences.store_interactions:
            logger.debug("memory.save_skipped", extra={"user_hash": hash_for_log(memory.user_id)})
            return False

        try:
            memory.last_updated = self._now_iso()
            self.store.set(self.storage_key(memory.user_id), memory.model_dump_json(by_alias=True))
        except Exception as exc:  # noqa: BLE001 - durability is best effort
            logger.error(
                "memory.save_failed",
                extra={"user_hash": hash_for_log(memory.user_id), "error_type": type(exc).__name__},
            )
            return False
        return True

    def clear_memory(self, user_id: str) -> None:
        """Delete the stored profile for user_id. Failures are logged, not raised.

        The opt-out marker is not profile data and survives a clear.
        """
        try:
            self.store.remove(self.storage_key(user_id))
            logger.info("memory.cleared", extra={"user_hash": hash_for_log(user_id)})
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "memory.clear_failed",
                extra={"user_hash": hash_for_log(user_id), "error_type": type(exc).__name__},
            )

    def export_memory(self, user_id: str) -> str:
        """Return the loaded profile as pretty-printed JSON for data export."""
        return self.load_memory(user_id).model_dump_json(by_alias=True, indent=2)

    def _opted_out_memory(self, user_id: str) -> AssistantMemory:
        memory = create_default_memory(user_id, self._now_iso())
        memory.preferences.store_interactions = False
        return memory

    def _migrate_memory(self, old_memory: Any, user_id: str) -> AssistantMemory:
        # Only one schema version exists so far; older documents are dropped.
        return create_default_memory(user_id, self._now_iso())

    # Merging

    def apply_learnings(self, memory: AssistantMemory, learnings: LearningsCandidate) -> AssistantMemory:
        """Merge a learnings candidate into a copy of memory.

        - Preferences below the confirmation threshold are ignored; others are
          upserted by key, replacing only on strictly higher confidence.
        - Corrections are appended, keeping the last 50.
        - Repeated tasks are upserted by (task_type, pattern): a match bumps
          frequency and overwrites last_occurrence and suggested_automation.
        - Redaction patterns are added if not already present.

        Args:
            memory: Current profile (not modified).
            learnings: Candidate parsed from an assistant reply.

        Returns:
            The merged profile. Nothing is persisted.
        """
        updated = memory.model_copy(deep=True)
        threshold = memory.preferences.confirmation_threshold

        for pref in learnings.observed_preferences:
            if pref.confidence < threshold:
                continue
            existing_index = next(
                (i for i, p in enumerate(updated.learned_preferences) if p.key == pref.key),
                None,
            )
            if existing_index is None:
                updated.learned_preferences.append(pref.model_copy())
            elif pref.confidence > updated.learned_preferences[existing_index].confidence:
                updated.learned_preferences[existing_index] = pref.model_copy()

        for correction in learnings.corrections:
            updated.user_corrections.append(correction.model_copy())
        if len(updated.user_corrections) > MAX_CORRECTIONS:
            updated.user_corrections = updated.user_corrections[-MAX_CORRECTIONS:]

        for task in learnings.repeated_tasks:
            existing = next(
                (
                    t
                    for t in updated.repeated_tasks
                    if t.task_type == task.task_type and t.pattern == task.pattern
                ),
                None,
            )
            if existing is None:
                updated.repeated_tasks.append(task.model_copy())
            else:
                existing.frequency += 1
                existing.last_occurrence = task.last_occurrence
                existing.suggested_automation = task.suggested_automation

        for note in learnings.redact_notes:
            if note.pattern not in updated.redaction_patterns:
                updated.redaction_patterns.append(note.pattern)

        return updated

    def apply_and_save(self, user_id: str, learnings: LearningsCandidate) -> AssistantMemory:
        """Load, merge learnings into, and save the profile for user_id."""
        memory = self.apply_learnings(self.load_memory(user_id), learnings)
        self.save_memory(memory)
        return memory

    def update_preferences(self, user_id: str, update: PreferencesUpdate) -> AssistantMemory:
        """Patch the preferences block of a user's profile.

        Turning store_interactions off deletes the stored profile and records
        an opt-out marker; turning it back on removes the marker.
        """
        memory = self.load_memory(user_id)
        changes = update.model_dump(exclude_none=True)
        memory.preferences = memory.preferences.model_copy(update=changes)

        if memory.preferences.store_interactions:
            self._set_opt_out(user_id, opted_out=False)
            self.save_memory(memory)
        else:
            self.clear_memory(user_id)
            self._set_opt_out(user_id, opted_out=True)
        return memory

    def _set_opt_out(self, user_id: str, *, opted_out: bool) -> None:
        key = self.opt_out_key(user_id)
        try:
            if opted_out:
                self.store.set(key, json.dumps({"optedOutAt": self._now_iso()}))
                logger.info("memory.opted_out", extra={"user_hash": hash_for_log(user_id)})
            elif self.store.get(key) is not None:
                self.store.remove(key)
                logger.info("memory.opted_in", extra={"user_hash": hash_for_log(user_id)})
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "memory.opt_out_write_failed",
                extra={"user_hash": hash_for_log(user_id), "error_type": type(exc).__name__},
            )

    # Prompt rendering

    def build_memory_context(self, memory: AssistantMemory) -> str:
        """Render the profile as labeled sections for the system prompt.

        Sorting never reorders the stored lists; ties keep stored order.
        """
        prefs = memory.preferences
        sections = [
            "User Preferences:\n"
            f"- Tone: {prefs.tone}\n"
            f"- Confirmation threshold: {_format_number(prefs.confirmation_threshold)}\n"
            f"- Auto-apply learnings: {'Yes' if prefs.auto_apply_learnings else 'No'}"
        ]

        if memory.learned_preferences:
            top = sorted(memory.learned_preferences, key=lambda p: p.confidence, reverse=True)
            lines = "\n".join(
                f"  - {p.key}: {p.value} (confidence: {p.confidence * 100:.0f}%)"
                for p in top[:MAX_PROMPT_PREFERENCES]
            )
            sections.append(f"\nLearned Preferences:\n{lines}")

        if memory.user_corrections:
            lines = "\n".join(
                f'  - {c.context}: changed from "{c.original_action}" to "{c.corrected_action}"'
                for c in memory.user_corrections[-MAX_PROMPT_CORRECTIONS:]
            )
            sections.append(f"\nRecent Corrections:\n{lines}")

        if memory.repeated_tasks:
            frequent = sorted(memory.repeated_tasks, key=lambda t: t.frequency, reverse=True)
            lines = "\n".join(
                f"  - {t.task_type}: {t.pattern} ({t.frequency} times)"
                for t in frequent[:MAX_PROMPT_TASKS]
            )
            sections.append(f"\nFrequent Tasks:\n{lines}")

        if memory.default_values:
            lines = "\n".join(
                f"  - {key}: {_render_value(value)}" for key, value in memory.default_values.items()
            )
            sections.append(f"\nCustom Defaults:\n{lines}")

        return "\n".join(sections)

    def get_system_prompt_with_memory(self, memory: AssistantMemory) -> str:
        """Build the memory-aware system prompt for the assistant model."""
        tone = _TONE_INSTRUCTIONS.get(memory.preferences.tone, _TONE_INSTRUCTIONS["balanced"])
        threshold = _format_number(memory.preferences.confirmation_threshold)

        return f"""You are an intelligent in-app assistant for DocketChief, a legal practice management system.

MISSION:
- Help the user complete tasks quickly, with minimal chatter.
- Learn preferences from interactions (implicit + explicit) and apply them next time.
- Be professional but {tone}.

MEMORY CONTEXT:
{self.build_memory_context(memory)}

HOW TO LEARN (MEMORY RULES):
- Treat user corrections, repeated choices, renamed defaults, and error fixes as preferences.
- Never assume: when confidence < {threshold}, ASK a 1-line confirmation.
- Only store durable facts likely to be useful for at least 30 days.
- Never store sensitive data without explicit user opt-in.

PRIVACY & SAFETY:
- If the user says "don't remember this," exclude it and emit redact_notes.
- Do not store credentials, secrets, health data, or precise addresses without opt-in.

ON EACH RESPONSE:
1) Read the MEMORY context above and silently adapt (don't restate it unless the user asks).
2) Answer the user's request.
3) At the end of your response, include a JSON block with learnings:

{LEARNINGS_MARKER}
```json
{_LEARNINGS_SCHEMA}
```

This LEARNINGS_CANDIDATE block is for the system only and helps improve future interactions."""

    # Model output handling

    def parse_learnings_candidate(self, response: str) -> LearningsCandidate | None:
        """Extract the LEARNINGS_CANDIDATE block from a model reply.

        Returns:
            The parsed candidate, or None if the block is absent or malformed.
        """
        match = _LEARNINGS_BLOCK_RE.search(response or "")
        if not match:
            return None

        try:
            return LearningsCandidate.model_validate(json.loads(match.group(1)))
        except (ValueError, RecursionError) as exc:
            # ValidationError and JSONDecodeError are ValueErrors; deep nesting recurses
            logger.warning(
                "memory.learnings_parse_failed",
                extra={"error_type": type(exc).__name__, "block_chars": len(match.group(1))},
            )
            return None

    def extract_clean_response(self, response: str) -> str:
        """Return response without any learnings block, trimmed."""
        return _LEARNINGS_BLOCK_RE.sub("", response or "").strip()

    def should_redact(self, text: str, memory: AssistantMemory) -> bool:
        """True if any redaction pattern occurs in text, ignoring case."""
        lowered = text.lower()
        return any(pattern.lower() in lowered for pattern in memory.redaction_patterns)
