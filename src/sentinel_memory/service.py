"""Async facade over :class:`~sentinel_memory.store.MemoryStore`.

Request handlers share one :class:`MemoryService` per open workspace.
Store calls are blocking and run in a worker thread; embedding calls run in
a worker thread too, under a timeout, and never while the store lock is
held.  New memories are written before their embedding is requested, so a
slow, failing or cancelled embedding can only leave a memory without a
vector, never lose the memory itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .embeddings import EmbeddingProvider, EmbeddingResult
from .errors import EmbeddingUnavailable, NotFoundError, ValidationError
from .extraction import MIN_MESSAGES, ConversationMessage, MemoryExtractor
from .memory import (
    KEYWORD_MATCH,
    SEMANTIC_MATCH,
    CreateMemoryInput,
    Memory,
    MemoryFilters,
    MemorySettings,
    MemoryStats,
    MemoryWithScore,
    UpdateMemoryInput,
    UpdateSettingsInput,
)
from .store import MemoryStore, to_fts_query

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SearchOutcome:
    """Result of :meth:`MemoryService.search_memories`.

    Attributes:
        memories: Ranked hits.
        search_type: ``"semantic"`` if the hits came from vector search,
            otherwise ``"keyword"``.
        degraded: An embedding was wanted for the query but none could be
            computed, so only keyword search ran.
    """

    memories: list[MemoryWithScore] = field(default_factory=list)
    search_type: str = KEYWORD_MATCH
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "memories": [m.to_dict() for m in self.memories],
            "count": len(self.memories),
            "search_type": self.search_type,
            "degraded": self.degraded,
        }


class MemoryService:
    """Async operations on the memories of one workspace.

    Args:
        store: The workspace's open store.  The service takes ownership and
            closes it in :meth:`close`.
        provider: Embedding provider, or ``None`` for keyword-only use.
        embedding_timeout: Seconds to wait for one embedding before giving
            up on it.
        extractor: Chat-completion client for :meth:`extract_memories`.
    """

    def __init__(
        self,
        store: MemoryStore,
        provider: EmbeddingProvider | None = None,
        embedding_timeout: float = 30.0,
        extractor: MemoryExtractor | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._embedding_timeout = embedding_timeout
        self._extractor = extractor

    @property
    def store(self) -> MemoryStore:
        return self._store

    @property
    def workspace_id(self) -> str:
        return self._store.workspace_id

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> EmbeddingResult | None:
        """Compute an embedding for *text*, or ``None`` if unavailable.

        Provider failures and timeouts are logged and absorbed.
        """
        provider = self._provider
        if provider is None or not provider.available:
            logger.debug("No embedding provider available; skipping embedding")
            return None

        model: str | None = None
        if provider.uses_workspace_model:
            settings = await self._run(self._store.get_settings)
            model = settings.embedding_model

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(provider.embed, text, model),
                timeout=self._embedding_timeout,
            )
        except EmbeddingUnavailable as exc:
            logger.warning("Embedding unavailable: %s", exc)
        except asyncio.TimeoutError:
            logger.warning("Embedding timed out after %.1fs", self._embedding_timeout)
        return None

    async def _attach_embedding(self, memory: Memory) -> bool:
        result = await self._embed(memory.content)
        if result is None:
            return False
        try:
            await self._run(self._store.store_embedding, memory.id, result.vector, result.model)
        except NotFoundError:
            logger.debug("Memory %s was deleted before its embedding was stored", memory.id)
            return False
        return True

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_memory(self, data: CreateMemoryInput, generate_embedding: bool = True) -> Memory:
        """Create a memory, then embed it when *generate_embedding* is set.

        The row exists before the embedding is requested.  Returns the
        memory as stored after the embedding step.
        """
        memory = await self._run(self._store.create, data)
        if generate_embedding and await self._attach_embedding(memory):
            refreshed = await self._run(self._store.get, memory.id)
            if refreshed is not None:
                return refreshed
        return memory

    async def get_memory(self, memory_id: str) -> Memory | None:
        return await self._run(self._store.get, memory_id)

    async def update_memory(self, memory_id: str, changes: UpdateMemoryInput) -> Memory:
        """Apply *changes*; new content is re-embedded like a fresh memory."""
        memory = await self._run(self._store.update, memory_id, changes)
        if changes.content is not None and not memory.has_embedding and await self._attach_embedding(memory):
            refreshed = await self._run(self._store.get, memory.id)
            if refreshed is not None:
                return refreshed
        return memory

    async def delete_memory(self, memory_id: str) -> bool:
        return await self._run(self._store.delete, memory_id)

    async def list_memories(self, filters: MemoryFilters | None = None) -> tuple[list[Memory], int]:
        return await self._run(self._store.list, filters)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        embedding: list[float] | None = None,
        limit: int = 10,
        threshold: float = 0.7,
        model: str | None = None,
    ) -> list[MemoryWithScore]:
        """Hybrid search with a caller-supplied query embedding."""
        return await self._run(self._store.search_hybrid, query, embedding, limit, threshold, model)

    async def search_memories(
        self,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
        use_embedding: bool = True,
    ) -> SearchOutcome:
        """Embed *query* when possible and run hybrid search.

        Semantic hits are compared only against vectors produced by the
        same model as the query embedding.  A keyword query that FTS5
        rejects is retried as a match on any of its words.
        """
        result = await self._embed(query) if use_embedding else None
        if result is not None:
            semantic = await self._run(self._store.search_semantic, result.vector, limit, threshold, result.model)
            if semantic:
                return SearchOutcome(semantic, SEMANTIC_MATCH)
        keyword = await self._keyword(query, limit)
        return SearchOutcome(keyword, KEYWORD_MATCH, degraded=use_embedding and result is None)

    async def _keyword(self, query: str, limit: int) -> list[MemoryWithScore]:
        """Keyword search that retries rejected FTS5 syntax as a plain word match."""
        try:
            return await self._run(self._store.search_keyword, query, limit)
        except ValidationError:
            fts_query = to_fts_query(query)
            if fts_query is None:
                raise
            logger.debug("Retrying rejected FTS5 query %r as %r", query, fts_query)
            return await self._run(self._store.search_keyword, fts_query, limit)

    async def get_relevant_memories(self, context: str, limit: int | None = None) -> list[MemoryWithScore]:
        """Find memories relevant to free-form *context* and mark them used.

        The similarity threshold and default limit come from the workspace
        settings.  The keyword fallback matches any word of *context*.
        """
        settings = await self._run(self._store.get_settings)
        if limit is None:
            limit = settings.context_injection_count

        memories: list[MemoryWithScore] = []
        result = await self._embed(context)
        if result is not None:
            memories = await self._run(
                self._store.search_semantic,
                result.vector,
                limit,
                settings.similarity_threshold,
                result.model,
            )
        if not memories:
            fts_query = to_fts_query(context)
            if fts_query is not None:
                memories = await self._run(self._store.search_keyword, fts_query, limit)

        await self.mark_memories_used(m.memory.id for m in memories)
        return memories

    # ------------------------------------------------------------------
    # Embeddings and access tracking
    # ------------------------------------------------------------------

    async def store_embedding(self, memory_id: str, embedding: list[float], model: str) -> None:
        await self._run(self._store.store_embedding, memory_id, embedding, model)

    async def embed_memory(self, memory_id: str) -> bool:
        """(Re)compute and store the embedding of an existing memory.

        Returns:
            ``True`` if a vector was stored, ``False`` if none was available.

        Raises:
            NotFoundError: No such memory.
        """
        memory = await self._run(self._store.get, memory_id)
        if memory is None:
            raise NotFoundError(memory_id)
        return await self._attach_embedding(memory)

    async def increment_access(self, memory_id: str) -> None:
        await self._run(self._store.increment_access, memory_id)

    async def mark_memories_used(self, memory_ids: Iterable[str]) -> int:
        """Record a use of each memory; ids that no longer exist are skipped.

        Returns:
            How many memories were marked.
        """
        marked = 0
        for memory_id in memory_ids:
            try:
                await self._run(self._store.increment_access, memory_id)
            except NotFoundError:
                logger.debug("Skipping access mark for missing memory %s", memory_id)
                continue
            marked += 1
        return marked

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_memories(
        self,
        conversation_id: str,
        messages: list[ConversationMessage | dict[str, Any]],
        model: str | None = None,
    ) -> list[Memory]:
        """Extract memories from a conversation and store them.

        Returns an empty list for conversations shorter than
        :data:`~sentinel_memory.extraction.MIN_MESSAGES`, when automatic
        extraction is disabled for the workspace, or when the extraction
        request fails.
        """
        if len(messages) < MIN_MESSAGES:
            return []
        if self._extractor is None:
            logger.debug("No extractor configured; skipping extraction")
            return []

        settings = await self._run(self._store.get_settings)
        if not settings.auto_extract_enabled:
            logger.debug("Automatic extraction disabled for workspace %s", self.workspace_id)
            return []

        turns = [m if isinstance(m, ConversationMessage) else ConversationMessage.from_dict(m) for m in messages]
        inputs = await asyncio.to_thread(
            self._extractor.extract,
            turns,
            conversation_id,
            model or settings.extraction_model,
        )

        created: list[Memory] = []
        for data in inputs:
            created.append(await self.create_memory(data))
        if created:
            logger.info("Extracted %d memories from conversation %s", len(created), conversation_id)
        return created

    # ------------------------------------------------------------------
    # Settings and stats
    # ------------------------------------------------------------------

    async def get_settings(self) -> MemorySettings:
        return await self._run(self._store.get_settings)

    async def update_settings(self, changes: UpdateSettingsInput) -> MemorySettings:
        return await self._run(self._store.update_settings, changes)

    async def get_stats(self) -> MemoryStats:
        return await self._run(self._store.get_stats)

    def close(self) -> None:
        self._store.close()

    def __repr__(self) -> str:  # pragma: no cover
        return f"MemoryService(store={self._store!r}, provider={self._provider!r})"
