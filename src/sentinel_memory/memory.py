"""Memory data model for sentinel-memory.

Defines the dataclasses passed between the store, the service layer and the
command layer: :class:`Memory` itself, the create/update/filter inputs,
scored search results, per-workspace settings and aggregate statistics.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

# ---------------------------------------------------------------------------
# Memory types
# ---------------------------------------------------------------------------

AUTO_TYPE = "auto"
USER_TYPE = "user"
CONVERSATION_TYPE = "conversation"

MEMORY_TYPES: tuple[str, ...] = (AUTO_TYPE, USER_TYPE, CONVERSATION_TYPE)

# Pseudo-type accepted by list filters: "is_pinned = 1, any type".
PINNED_FILTER = "pinned"

SEMANTIC_MATCH = "semantic"
KEYWORD_MATCH = "keyword"

SORT_IMPORTANCE = "importance"
SORT_ACCESSED = "accessed"

DEFAULT_IMPORTANCE = 5
DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _normalise_keys(data: dict[str, Any], aliases: dict[str, str] | None = None) -> dict[str, Any]:
    """Convert camelCase keys to snake_case and apply *aliases*.

    The desktop front-end sends camelCase payloads; Python callers use
    snake_case.  Both are accepted.
    """
    out: dict[str, Any] = {}
    for key, value in data.items():
        snake = _CAMEL_RE.sub("_", key).lower()
        if aliases and snake in aliases:
            snake = aliases[snake]
        out[snake] = value
    return out


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


@dataclass
class Memory:
    """A single remembered fact or summary, as persisted for one workspace.

    Attributes:
        id: Opaque unique identifier assigned at creation.
        workspace_id: Identifier of the owning workspace (path hash).
        content: The remembered text.
        summary: Optional short title.
        memory_type: ``"auto"``, ``"user"`` or ``"conversation"``.
        source_conversation_id: Optional link to the originating chat.
        source_message_ids: Optional links to the originating messages.
        tags: Optional ordered list of short labels.
        importance: Integer priority, conventionally ``1``-``10``.
        access_count: Number of times the memory was marked as used.
        last_accessed_at: ISO timestamp of the last recorded use.
        is_pinned: Pinned memories are exempt from eviction.
        embedding_model: Model that produced the stored vector, if any.
        has_embedding: Whether a vector is stored for this memory.
        metadata: Opaque JSON payload, never inspected.
        created_at: ISO timestamp of creation.
        updated_at: ISO timestamp of the last mutation.
        expires_at: Reserved for TTL eviction; not enforced.
    """

    id: str
    workspace_id: str
    content: str
    memory_type: str = USER_TYPE
    summary: str | None = None
    source_conversation_id: str | None = None
    source_message_ids: list[str] | None = None
    tags: list[str] | None = None
    importance: int = DEFAULT_IMPORTANCE
    access_count: int = 0
    last_accessed_at: str | None = None
    is_pinned: bool = False
    embedding_model: str | None = None
    has_embedding: bool = False
    metadata: Any = None
    created_at: str = field(default_factory=utcnow_iso)
    updated_at: str = field(default_factory=utcnow_iso)
    expires_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise the memory to a JSON-safe dictionary."""
        return asdict(self)

    def __repr__(self) -> str:  # pragma: no cover
        preview = self.content[:60] + ("..." if len(self.content) > 60 else "")
        return (
            f"Memory(id={self.id!r}, type={self.memory_type!r}, "
            f"content={preview!r}, importance={self.importance})"
        )


@dataclass
class MemoryWithScore:
    """A search hit: a memory plus its score and how it was matched.

    Higher scores are better for both match types.  Semantic scores are
    cosine similarities; keyword scores are negated BM25 values.
    """

    memory: Memory
    score: float
    match_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory": self.memory.to_dict(),
            "score": self.score,
            "match_type": self.match_type,
        }


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass
class CreateMemoryInput:
    """Fields accepted when creating a memory.

    Only ``content`` is required.  Nothing here is validated beyond what
    the database schema enforces.
    """

    content: str
    summary: str | None = None
    memory_type: str | None = None
    tags: list[str] | None = None
    importance: int | None = None
    is_pinned: bool | None = None
    source_conversation_id: str | None = None
    source_message_ids: list[str] | None = None
    metadata: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreateMemoryInput:
        """Build an input from a snake_case or camelCase mapping.

        ``type`` is accepted as an alias for ``memory_type``.
        """
        d = _normalise_keys(data, aliases={"type": "memory_type"})
        return cls(**_known_fields(cls, d))


@dataclass
class UpdateMemoryInput:
    """Partial update for a memory.  ``None`` means "keep the prior value"."""

    content: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    importance: int | None = None
    is_pinned: bool | None = None
    metadata: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateMemoryInput:
        d = _normalise_keys(data)
        return cls(**_known_fields(cls, d))

    def present(self) -> dict[str, Any]:
        """Return only the fields that were supplied."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class MemoryFilters:
    """Filters, sort order and pagination for listing memories.

    Attributes:
        memory_type: Restrict to one type, or ``"pinned"`` for every pinned
            memory regardless of type.
        tags: Only memories carrying every one of these tags.
        is_pinned: Restrict by pinned flag.
        limit: Page size.
        offset: Rows to skip.
        sort_by: ``"importance"``, ``"accessed"`` or ``None`` (recency).
    """

    memory_type: str | None = None
    tags: list[str] | None = None
    is_pinned: bool | None = None
    limit: int = 100
    offset: int = 0
    sort_by: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryFilters:
        d = _normalise_keys(data, aliases={"type": "memory_type"})
        d = {k: v for k, v in _known_fields(cls, d).items() if v is not None}
        return cls(**d)


# ---------------------------------------------------------------------------
# Settings and statistics
# ---------------------------------------------------------------------------


@dataclass
class MemorySettings:
    """Per-workspace tunables.  Exactly one row exists per workspace."""

    workspace_id: str
    auto_extract_enabled: bool = True
    extraction_model: str | None = None
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    max_memories: int = 1000
    context_injection_count: int = 5
    similarity_threshold: float = 0.7
    created_at: str = field(default_factory=utcnow_iso)
    updated_at: str = field(default_factory=utcnow_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UpdateSettingsInput:
    """Partial update for :class:`MemorySettings`."""

    auto_extract_enabled: bool | None = None
    extraction_model: str | None = None
    embedding_model: str | None = None
    max_memories: int | None = None
    context_injection_count: int | None = None
    similarity_threshold: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateSettingsInput:
        d = _normalise_keys(data)
        return cls(**_known_fields(cls, d))

    def present(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class MemoryStats:
    """Aggregate counts for one workspace, computed on demand."""

    total_count: int = 0
    auto_count: int = 0
    user_count: int = 0
    conversation_count: int = 0
    pinned_count: int = 0
    with_embeddings: int = 0
    avg_importance: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
