"""Tests for the data model dataclasses.

Covers defaults, dictionary serialisation, and ``from_dict`` handling of
camelCase payloads from the front-end.
"""

from __future__ import annotations

from sentinel_memory.memory import (
    DEFAULT_EMBEDDING_MODEL,
    CreateMemoryInput,
    Memory,
    MemoryFilters,
    MemorySettings,
    MemoryWithScore,
    UpdateMemoryInput,
    UpdateSettingsInput,
)

# ------------------------------------------------------------------
# Memory
# ------------------------------------------------------------------


def test_memory_defaults():
    """A bare Memory carries the documented defaults."""
    mem = Memory(id="m1", workspace_id="ws", content="hello")
    assert mem.memory_type == "user"
    assert mem.importance == 5
    assert mem.access_count == 0
    assert mem.is_pinned is False
    assert mem.has_embedding is False
    assert mem.tags is None


def test_memory_to_dict_is_plain_data():
    """to_dict produces JSON-serialisable data."""
    mem = Memory(id="m1", workspace_id="ws", content="hello", tags=["a", "b"], metadata={"k": [1, 2]})
    d = mem.to_dict()
    assert d["id"] == "m1"
    assert d["tags"] == ["a", "b"]
    assert d["metadata"] == {"k": [1, 2]}
    assert d["memory_type"] == "user"


def test_memory_with_score_to_dict():
    """Scored hits nest the memory under "memory"."""
    mem = Memory(id="m1", workspace_id="ws", content="hello")
    d = MemoryWithScore(memory=mem, score=0.9, match_type="semantic").to_dict()
    assert d["score"] == 0.9
    assert d["match_type"] == "semantic"
    assert d["memory"]["id"] == "m1"


# ------------------------------------------------------------------
# Inputs
# ------------------------------------------------------------------


def test_create_input_from_camel_case():
    """camelCase payloads and the "type" alias are accepted."""
    data = CreateMemoryInput.from_dict(
        {
            "content": "Uses tabs",
            "type": "auto",
            "isPinned": True,
            "sourceConversationId": "conv-1",
            "sourceMessageIds": ["a", "b"],
            "generateEmbedding": False,
        }
    )
    assert data.content == "Uses tabs"
    assert data.memory_type == "auto"
    assert data.is_pinned is True
    assert data.source_conversation_id == "conv-1"
    assert data.source_message_ids == ["a", "b"]


def test_create_input_from_snake_case():
    """snake_case payloads map directly."""
    data = CreateMemoryInput.from_dict({"content": "x", "memory_type": "conversation", "importance": 9})
    assert data.memory_type == "conversation"
    assert data.importance == 9


def test_update_input_present_skips_absent_fields():
    """present() reports only supplied fields."""
    changes = UpdateMemoryInput.from_dict({"importance": 2, "isPinned": False})
    assert changes.present() == {"importance": 2, "is_pinned": False}


def test_filters_from_dict_ignores_none():
    """None values keep the filter defaults."""
    filters = MemoryFilters.from_dict({"type": "pinned", "limit": None, "sortBy": "importance"})
    assert filters.memory_type == "pinned"
    assert filters.limit == 100
    assert filters.offset == 0
    assert filters.sort_by == "importance"


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------


def test_settings_defaults():
    """Settings defaults match a fresh workspace."""
    settings = MemorySettings(workspace_id="ws")
    assert settings.auto_extract_enabled is True
    assert settings.extraction_model is None
    assert settings.embedding_model == DEFAULT_EMBEDDING_MODEL
    assert settings.max_memories == 1000
    assert settings.context_injection_count == 5
    assert settings.similarity_threshold == 0.7


def test_update_settings_input_from_camel_case():
    """Settings updates accept camelCase keys."""
    changes = UpdateSettingsInput.from_dict({"autoExtractEnabled": False, "similarityThreshold": 0.5})
    assert changes.present() == {"auto_extract_enabled": False, "similarity_threshold": 0.5}
