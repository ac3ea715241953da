"""sentinel-memory -- persistent, per-workspace memory for an AI coding assistant.

Memories are stored in a SQLite database inside the workspace
(``<workspace>/.sentinelops/memory.db``), indexed with FTS5 for keyword
search and with embedding vectors for semantic search.  Retrieval tries
semantic search first and falls back to keyword search.

Quick start::

    import asyncio
    from sentinel_memory import CreateMemoryInput, MemoryService, MemoryStore

    service = MemoryService(MemoryStore("/path/to/workspace"))
    asyncio.run(service.create_memory(CreateMemoryInput("The user prefers dark mode.")))
    outcome = asyncio.run(service.search_memories("dark"))
"""

from __future__ import annotations

__version__ = "0.1.0"

from .commands import ApiResponse, AppState, MemoryCommands
from .config import MemoryConfig
from .embeddings import (
    EmbeddingProvider,
    EmbeddingResult,
    NoopEmbedding,
    OllamaEmbedding,
    OpenAIEmbedding,
    create_embedding_provider,
)
from .errors import (
    EmbeddingUnavailable,
    MemoryStoreError,
    NotFoundError,
    NoWorkspaceError,
    StorageError,
    ValidationError,
)
from .extraction import ConversationMessage, MemoryExtractor
from .memory import (
    CreateMemoryInput,
    Memory,
    MemoryFilters,
    MemorySettings,
    MemoryStats,
    MemoryWithScore,
    UpdateMemoryInput,
    UpdateSettingsInput,
)
from .service import MemoryService, SearchOutcome
from .store import MemoryStore, cosine_similarity, workspace_id_for

__all__ = [
    "__version__",
    "ApiResponse",
    "AppState",
    "ConversationMessage",
    "CreateMemoryInput",
    "EmbeddingProvider",
    "EmbeddingResult",
    "EmbeddingUnavailable",
    "Memory",
    "MemoryCommands",
    "MemoryConfig",
    "MemoryExtractor",
    "MemoryFilters",
    "MemoryService",
    "MemorySettings",
    "MemoryStats",
    "MemoryStore",
    "MemoryStoreError",
    "MemoryWithScore",
    "NoWorkspaceError",
    "NoopEmbedding",
    "NotFoundError",
    "OllamaEmbedding",
    "OpenAIEmbedding",
    "SearchOutcome",
    "StorageError",
    "UpdateMemoryInput",
    "UpdateSettingsInput",
    "ValidationError",
    "cosine_similarity",
    "create_embedding_provider",
    "workspace_id_for",
]
