"""Unit tests for AssistantMemoryService persistence and merge rules."""

import json
from typing import Any

import pytest

from app.adapters.storage import InMemoryKeyValueStore
from app.schemas.assistant import (
    MEMORY_VERSION,
    AssistantMemory,
    LearningsCandidate,
    PreferencesUpdate,
    create_default_memory,
)
from app.services.memory_service import MAX_CORRECTIONS, AssistantMemoryService

USER = "user-123"


def _candidate(**lists: list[dict[str, Any]]) -> LearningsCandidate:
    return LearningsCandidate.model_validate(lists)


def _pref(key: str, confidence: float, value: str = "v") -> dict[str, Any]:
    return {"key": key, "value": value, "confidence": confidence, "category": "workflow"}


def _correction(i: int) -> dict[str, Any]:
    return {"originalAction": f"orig-{i}", "correctedAction": f"fixed-{i}", "context": f"ctx-{i}"}


def _task(task_type: str, pattern: str, **extra: Any) -> dict[str, Any]:
    return {"taskType": task_type, "pattern": pattern, "frequency": 1, **extra}


class _FailingStore(InMemoryKeyValueStore):
    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("disk full")

    def remove(self, key):
        raise OSError("read-only")


class TestPersistence:
    def test_load_missing_returns_default(self, memory_service: AssistantMemoryService) -> None:
        memory = memory_service.load_memory(USER)

        assert memory.user_id == USER
        assert memory.version == MEMORY_VERSION
        assert memory.preferences.tone == "balanced"
        assert memory.preferences.confirmation_threshold == 0.7
        assert memory.preferences.auto_apply_learnings is True
        assert memory.preferences.store_interactions is True
        assert memory.learned_preferences == []
        assert memory.default_values == {}

    def test_save_then_load_round_trips(self, memory_service, store, clock) -> None:
        memory = memory_service.load_memory(USER)
        memory.default_values["court"] = "Wayne County"

        assert memory_service.save_memory(memory) is True

        raw = json.loads(store.get(f"docketchief_assistant_memory_{USER}"))
        assert raw["userId"] == USER
        assert raw["defaultValues"] == {"court": "Wayne County"}
        assert memory_service.load_memory(USER).default_values == {"court": "Wayne County"}

    def test_save_stamps_last_updated(self, memory_service, clock) -> None:
        memory = create_default_memory(USER, "2000-01-01T00:00:00.000Z")
        clock.current = 1_700_000_000_000

        memory_service.save_memory(memory)

        assert memory.last_updated == "2023-11-14T22:13:20.000Z"

    def test_save_is_noop_when_store_interactions_disabled(self, memory_service, store) -> None:
        memory = memory_service.load_memory(USER)
        memory.preferences.store_interactions = False
        memory.default_values["x"] = "y"

        assert memory_service.save_memory(memory) is False

        assert len(store) == 0
        reloaded = memory_service.load_memory(USER)
        assert reloaded.default_values == {}
        assert reloaded.preferences.store_interactions is True

    @pytest.mark.parametrize("raw", ["{not json", "[]", '{"version": "1.0.0"}', '"text"'])
    def test_load_corrupt_document_returns_default(self, memory_service, store, raw: str) -> None:
        store.set(f"docketchief_assistant_memory_{USER}", raw)

        memory = memory_service.load_memory(USER)

        assert memory.user_id == USER
        assert memory.learned_preferences == []

    def test_version_mismatch_discards_stored_profile(self, memory_service, store) -> None:
        old = create_default_memory(USER, "2024-01-01T00:00:00.000Z").model_dump(by_alias=True)
        old["version"] = "0.9.0"
        old["defaultValues"] = {"court": "old"}
        store.set(f"docketchief_assistant_memory_{USER}", json.dumps(old))

        memory = memory_service.load_memory(USER)

        assert memory.version == MEMORY_VERSION
        assert memory.default_values == {}

    def test_store_failures_never_raise(self, clock) -> None:
        service = AssistantMemoryService(_FailingStore(), clock=clock)

        memory = service.load_memory(USER)
        assert memory.user_id == USER
        assert service.save_memory(memory) is False
        service.clear_memory(USER)

    def test_clear_memory_removes_profile(self, memory_service, store) -> None:
        memory_service.save_memory(memory_service.load_memory(USER))
        assert len(store) == 1

        memory_service.clear_memory(USER)

        assert len(store) == 0

    def test_profiles_are_keyed_per_user_and_namespace(self, store, clock) -> None:
        service = AssistantMemoryService(store, clock=clock, namespace="ns")
        service.save_memory(service.load_memory("a"))
        service.save_memory(service.load_memory("b"))

        assert "ns_a" in store
        assert "ns_b" in store

    def test_export_is_pretty_printed_full_profile(self, memory_service) -> None:
        memory = memory_service.apply_learnings(
            memory_service.load_memory(USER),
            _candidate(redact_notes=[{"reason": "private", "pattern": "divorce"}]),
        )
        memory_service.save_memory(memory)

        exported = memory_service.export_memory(USER)

        assert exported.startswith("{\n  ")
        data = json.loads(exported)
        assert data["redactionPatterns"] == ["divorce"]
        assert set(data) >= {
            "version",
            "userId",
            "lastUpdated",
            "preferences",
            "learnedPreferences",
            "userCorrections",
            "repeatedTasks",
            "defaultValues",
            "customWorkflows",
            "redactionPatterns",
            "optedOutCategories",
        }


class TestApplyLearnings:
    def test_preference_upsert_is_idempotent(self, memory_service) -> None:
        memory = memory_service.load_memory(USER)
        memory.preferences.confirmation_threshold = 0.8
        candidate = _candidate(observed_preferences=[_pref("citation_style", 0.9)])

        once = memory_service.apply_learnings(memory, candidate)
        twice = memory_service.apply_learnings(once, candidate)

        assert len(twice.learned_preferences) == 1
        assert twice.learned_preferences[0].key == "citation_style"
        assert twice.learned_preferences[0].confidence == 0.9

    def test_preference_below_threshold_is_ignored(self, memory_service) -> None:
        memory = memory_service.load_memory(USER)
        memory.preferences.confirmation_threshold = 0.8

        created = memory_service.apply_learnings(memory, _candidate(observed_preferences=[_pref("a", 0.79)]))
        assert created.learned_preferences == []

        existing = memory_service.apply_learnings(
            memory, _candidate(observed_preferences=[_pref("a", 0.85, value="old")])
        )
        updated = memory_service.apply_learnings(
            existing, _candidate(observed_preferences=[_pref("a", 0.5, value="new")])
        )
        assert [(p.value, p.confidence) for p in updated.learned_preferences] == [("old", 0.85)]

    def test_preference_at_threshold_is_accepted(self, memory_service) -> None:
        memory = memory_service.load_memory(USER)

        merged = memory_service.apply_learnings(memory, _candidate(observed_preferences=[_pref("a", 0.7)]))

        assert len(merged.learned_preferences) == 1

    def test_preference_replaced_only_on_strictly_higher_confidence(self, memory_service) -> None:
        memory = memory_service.apply_learnings(
            memory_service.load_memory(USER),
            _candidate(observed_preferences=[_pref("tone", 0.8, value="first")]),
        )

        same = memory_service.apply_learnings(
            memory, _candidate(observed_preferences=[_pref("tone", 0.8, value="second")])
        )
        higher = memory_service.apply_learnings(
            memory, _candidate(observed_preferences=[_pref("tone", 0.95, value="third")])
        )

        assert same.learned_preferences[0].value == "first"
        assert higher.learned_preferences[0].value == "third"
        assert higher.learned_preferences[0].confidence == 0.95

    def test_corrections_capped_at_last_fifty_in_order(self, memory_service) -> None:
        memory = memory_service.load_memory(USER)
        for i in range(60):
            memory = memory_service.apply_learnings(memory, _candidate(corrections=[_correction(i)]))

        assert len(memory.user_corrections) == MAX_CORRECTIONS
        assert [c.context for c in memory.user_corrections] == [f"ctx-{i}" for i in range(10, 60)]

    def test_corrections_are_not_idempotent(self, memory_service) -> None:
        candidate = _candidate(corrections=[_correction(1)])
        memory = memory_service.load_memory(USER)

        memory = memory_service.apply_learnings(memory_service.apply_learnings(memory, candidate), candidate)

        assert len(memory.user_corrections) == 2

    def test_repeated_task_frequency_increments(self, memory_service) -> None:
        memory = memory_service.load_memory(USER)
        first = _candidate(
            repeated_tasks=[_task("draft", "motion to compel", lastOccurrence="t1", suggestedAutomation="a1")]
        )
        second = _candidate(
            repeated_tasks=[_task("draft", "motion to compel", lastOccurrence="t2", suggestedAutomation="a2")]
        )

        merged = memory_service.apply_learnings(memory_service.apply_learnings(memory, first), second)

        assert len(merged.repeated_tasks) == 1
        task = merged.repeated_tasks[0]
        assert task.frequency == 2
        assert task.last_occurrence == "t2"
        assert task.suggested_automation == "a2"

    def test_repeated_task_distinct_pattern_is_appended(self, memory_service) -> None:
        merged = memory_service.apply_learnings(
            memory_service.load_memory(USER),
            _candidate(repeated_tasks=[_task("draft", "motion"), _task("draft", "brief"), _task("file", "motion")]),
        )

        assert [(t.task_type, t.pattern) for t in merged.repeated_tasks] == [
            ("draft", "motion"),
            ("draft", "brief"),
            ("file", "motion"),
        ]

    def test_redaction_patterns_are_deduplicated_case_sensitively(self, memory_service) -> None:
        merged = memory_service.apply_learnings(
            memory_service.load_memory(USER),
            _candidate(
                redact_notes=[
                    {"reason": "r", "pattern": "SSN"},
                    {"reason": "r", "pattern": "SSN"},
                    {"reason": "r", "pattern": "ssn"},
                ]
            ),
        )

        assert merged.redaction_patterns == ["SSN", "ssn"]

    def test_apply_does_not_mutate_input(self, memory_service) -> None:
        memory = memory_service.apply_learnings(
            memory_service.load_memory(USER), _candidate(repeated_tasks=[_task("draft", "motion")])
        )
        snapshot = memory.model_dump()

        memory_service.apply_learnings(
            memory,
            _candidate(
                observed_preferences=[_pref("a", 0.9)],
                corrections=[_correction(1)],
                repeated_tasks=[_task("draft", "motion")],
                redact_notes=[{"pattern": "x"}],
            ),
        )

        assert memory.model_dump() == snapshot

    def test_apply_and_save_persists(self, memory_service) -> None:
        memory_service.apply_and_save(USER, _candidate(observed_preferences=[_pref("a", 0.9)]))

        assert [p.key for p in memory_service.load_memory(USER).learned_preferences] == ["a"]


class TestPreferencesAndRedaction:
    def test_update_preferences_persists_changes(self, memory_service) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(tone="concise", confirmation_threshold=0.9))

        prefs = memory_service.load_memory(USER).preferences
        assert prefs.tone == "concise"
        assert prefs.confirmation_threshold == 0.9
        assert prefs.auto_apply_learnings is True

    def test_opting_out_clears_stored_profile(self, memory_service, store) -> None:
        memory_service.apply_and_save(USER, _candidate(observed_preferences=[_pref("a", 0.9)]))
        assert memory_service.storage_key(USER) in store

        memory = memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))

        assert memory.preferences.store_interactions is False
        assert memory_service.storage_key(USER) not in store
        assert memory_service.opt_out_key(USER) in store

    def test_opt_out_survives_reload(self, memory_service) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))

        reloaded = memory_service.load_memory(USER)

        assert reloaded.preferences.store_interactions is False
        assert memory_service.save_memory(reloaded) is False
        memory_service.apply_and_save(USER, _candidate(observed_preferences=[_pref("a", 0.9)]))
        assert memory_service.load_memory(USER).learned_preferences == []

    def test_opt_out_survives_clear_memory(self, memory_service, store) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))

        memory_service.clear_memory(USER)

        assert memory_service.opt_out_key(USER) in store
        assert memory_service.load_memory(USER).preferences.store_interactions is False

    def test_opting_back_in_removes_marker_and_saves(self, memory_service, store) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))

        memory = memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=True))

        assert memory.preferences.store_interactions is True
        assert memory_service.opt_out_key(USER) not in store
        assert memory_service.storage_key(USER) in store
        assert memory_service.load_memory(USER).preferences.store_interactions is True

    def test_opt_out_is_per_user(self, memory_service) -> None:
        memory_service.update_preferences(USER, PreferencesUpdate(store_interactions=False))

        assert memory_service.load_memory("user-456").preferences.store_interactions is True

    def test_should_redact_is_case_insensitive_substring(self, memory_service) -> None:
        memory = AssistantMemory(user_id=USER, last_updated="x", redaction_patterns=["Medical History"])

        assert memory_service.should_redact("client's MEDICAL history notes", memory) is True
        assert memory_service.should_redact("billing notes", memory) is False

    def test_should_redact_without_patterns_is_false(self, memory_service) -> None:
        assert memory_service.should_redact("anything", memory_service.load_memory(USER)) is False
