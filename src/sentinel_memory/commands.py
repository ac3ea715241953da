"""Command handlers for the IDE front-end.

Each handler takes plain JSON-compatible arguments (snake_case or
camelCase), calls the active workspace's :class:`MemoryService`, and
returns an ``ApiResponse`` envelope::

    {"ok": true,  "data": ...,  "error": null}
    {"ok": false, "data": null, "error": {"code": "NOT_FOUND", "message": "..."}}

Handlers never raise for domain errors; unexpected exceptions are logged
and reported as ``STORAGE_ERROR``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .config import MemoryConfig
from .embeddings import EmbeddingProvider
from .errors import MemoryStoreError, NotFoundError, NoWorkspaceError, StorageError, ValidationError
from .extraction import MemoryExtractor
from .memory import CreateMemoryInput, MemoryFilters, UpdateMemoryInput, UpdateSettingsInput
from .service import MemoryService
from .store import MemoryStore

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
STORAGE_ERROR = "STORAGE_ERROR"
NO_WORKSPACE = "NO_WORKSPACE"


@dataclass
class ApiResponse:
    """Uniform result envelope returned by every command."""

    ok: bool
    data: Any = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def success(cls, data: Any) -> ApiResponse:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, code: str, message: str) -> ApiResponse:
        return cls(ok=False, error_code=code, error_message=message)

    def to_dict(self) -> dict[str, Any]:
        error = None
        if not self.ok:
            error = {"code": self.error_code, "message": self.error_message}
        return {"ok": self.ok, "data": self.data, "error": error}


def error_code_for(exc: BaseException) -> str:
    """Map an exception onto its envelope error code."""
    if isinstance(exc, NotFoundError):
        return NOT_FOUND
    if isinstance(exc, ValidationError):
        return VALIDATION_ERROR
    if isinstance(exc, NoWorkspaceError):
        return NO_WORKSPACE
    return STORAGE_ERROR


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------


class AppState:
    """Holds the service for the currently open workspace.

    The service is created by :meth:`open_workspace` when the front-end
    switches workspace; until then every command answers ``NO_WORKSPACE``.

    Args:
        provider: Embedding provider shared by every workspace.
        extractor: Extraction client shared by every workspace.
        embedding_timeout: Seconds to wait for one embedding.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        extractor: MemoryExtractor | None = None,
        embedding_timeout: float = 30.0,
    ) -> None:
        self._provider = provider
        self._extractor = extractor
        self._embedding_timeout = embedding_timeout
        self._service: MemoryService | None = None

    @classmethod
    def from_config(cls, config: MemoryConfig) -> AppState:
        return cls(
            provider=config.build_embedding_provider(),
            extractor=config.build_extractor(),
            embedding_timeout=config.embedding_timeout,
        )

    @property
    def service(self) -> MemoryService | None:
        return self._service

    def require_service(self) -> MemoryService:
        """Return the active service.

        Raises:
            NoWorkspaceError: No workspace has been opened.
        """
        if self._service is None:
            raise NoWorkspaceError()
        return self._service

    def open_workspace(self, workspace_root: str | os.PathLike[str]) -> MemoryService:
        """Open (creating if needed) the store of *workspace_root*.

        The previously open workspace, if any, is closed.
        """
        store = MemoryStore(workspace_root)
        previous, self._service = self._service, MemoryService(
            store,
            provider=self._provider,
            embedding_timeout=self._embedding_timeout,
            extractor=self._extractor,
        )
        if previous is not None:
            previous.close()
        logger.info("Opened memory store for %s (workspace_id=%s)", store.workspace_root, store.workspace_id)
        return self._service

    def close(self) -> None:
        if self._service is not None:
            self._service.close()
            self._service = None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class MemoryCommands:
    """The memory commands exposed to the front-end."""

    def __init__(self, state: AppState) -> None:
        self._state = state

    async def _respond(
        self,
        op: Callable[[MemoryService], Awaitable[Any]],
        convert: Callable[[Any], Any] = lambda value: value,
    ) -> dict[str, Any]:
        try:
            service = self._state.require_service()
            result = await op(service)
        except MemoryStoreError as exc:
            code = error_code_for(exc)
            if code == STORAGE_ERROR:
                logger.error("Memory command failed: %s", exc)
            return ApiResponse.failure(code, str(exc)).to_dict()
        except Exception as exc:
            logger.exception("Unexpected error in memory command")
            return ApiResponse.failure(STORAGE_ERROR, str(exc)).to_dict()
        return ApiResponse.success(convert(result)).to_dict()

    # -- workspace ----------------------------------------------------

    async def open_workspace(self, path: str) -> dict[str, Any]:
        try:
            service = self._state.open_workspace(path)
        except (StorageError, OSError) as exc:
            logger.error("Could not open workspace %s: %s", path, exc)
            return ApiResponse.failure(error_code_for(exc), str(exc)).to_dict()
        return ApiResponse.success(
            {"workspace_id": service.workspace_id, "path": service.store.path}
        ).to_dict()

    # -- CRUD ---------------------------------------------------------

    async def create_memory(self, request: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(request.get("content"), str):
            return ApiResponse.failure(VALIDATION_ERROR, "content is required").to_dict()
        generate = request.get("generate_embedding", request.get("generateEmbedding"))
        data = CreateMemoryInput.from_dict(request)
        return await self._respond(
            lambda s: s.create_memory(data, generate_embedding=generate is not False),
            lambda memory: memory.to_dict(),
        )

    async def get_memory(self, memory_id: str) -> dict[str, Any]:
        async def op(service: MemoryService) -> Any:
            memory = await service.get_memory(memory_id)
            if memory is None:
                raise NotFoundError(memory_id)
            return memory

        return await self._respond(op, lambda memory: memory.to_dict())

    async def update_memory(self, memory_id: str, request: dict[str, Any]) -> dict[str, Any]:
        changes = UpdateMemoryInput.from_dict(request)
        return await self._respond(
            lambda s: s.update_memory(memory_id, changes),
            lambda memory: memory.to_dict(),
        )

    async def delete_memory(self, memory_id: str) -> dict[str, Any]:
        return await self._respond(lambda s: s.delete_memory(memory_id))

    async def list_memories(
        self,
        memory_type: str | None = None,
        tags: list[str] | None = None,
        is_pinned: bool | None = None,
        limit: int | None = None,
        offset: int | None = None,
        sort_by: str | None = None,
    ) -> dict[str, Any]:
        filters = MemoryFilters.from_dict(
            {
                "memory_type": memory_type,
                "tags": tags,
                "is_pinned": is_pinned,
                "limit": limit,
                "offset": offset,
                "sort_by": sort_by,
            }
        )

        def convert(result: Any) -> dict[str, Any]:
            memories, total = result
            return {
                "memories": [m.to_dict() for m in memories],
                "count": len(memories),
                "total": total,
            }

        return await self._respond(lambda s: s.list_memories(filters), convert)

    # -- search -------------------------------------------------------

    async def search_memories(
        self,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
        include_embedding: bool | None = None,
    ) -> dict[str, Any]:
        return await self._respond(
            lambda s: s.search_memories(
                query,
                limit=10 if limit is None else limit,
                threshold=0.7 if threshold is None else threshold,
                use_embedding=include_embedding is not False,
            ),
            lambda outcome: outcome.to_dict(),
        )

    async def get_relevant_memories(self, context: str, limit: int | None = None) -> dict[str, Any]:
        return await self._respond(
            lambda s: s.get_relevant_memories(context, limit),
            lambda hits: [h.to_dict() for h in hits],
        )

    async def mark_memories_used(self, memory_ids: list[str]) -> dict[str, Any]:
        return await self._respond(lambda s: s.mark_memories_used(memory_ids))

    async def embed_memory(self, memory_id: str) -> dict[str, Any]:
        return await self._respond(lambda s: s.embed_memory(memory_id))

    # -- extraction ---------------------------------------------------

    async def extract_memories(
        self,
        conversation_id: str,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> dict[str, Any]:
        return await self._respond(
            lambda s: s.extract_memories(conversation_id, messages, model),
            lambda memories: [m.to_dict() for m in memories],
        )

    # -- settings and stats -------------------------------------------

    async def get_memory_settings(self) -> dict[str, Any]:
        return await self._respond(lambda s: s.get_settings(), lambda st: st.to_dict())

    async def update_memory_settings(self, request: dict[str, Any]) -> dict[str, Any]:
        changes = UpdateSettingsInput.from_dict(request)
        return await self._respond(lambda s: s.update_settings(changes), lambda st: st.to_dict())

    async def get_memory_stats(self) -> dict[str, Any]:
        return await self._respond(lambda s: s.get_stats(), lambda st: st.to_dict())
