"""sentinel-memory MCP server.

Exposes the memory commands as MCP tools using FastMCP, over stdio (the
default, for IDE integration) or streamable HTTP.  Every tool returns the
``ApiResponse`` envelope produced by :class:`~sentinel_memory.commands.MemoryCommands`.

Environment variables are documented in :mod:`sentinel_memory.config`.
"""

from __future__ import annotations

import argparse
import logging
from typing import Annotated, Any, Optional

import uvicorn
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field
from starlette.middleware.cors import CORSMiddleware

from . import __version__
from .commands import AppState, MemoryCommands
from .config import MemoryConfig, configure_logging

logger = logging.getLogger(__name__)


def _annotations(title: str, read_only: bool, destructive: bool = False, idempotent: bool = True) -> ToolAnnotations:
    return ToolAnnotations(
        title=title,
        readOnlyHint=read_only,
        destructiveHint=destructive,
        idempotentHint=idempotent,
        openWorldHint=False,
    )


def build_server(state: AppState) -> FastMCP:
    """Create a FastMCP server whose tools delegate to *state*'s service."""
    mcp = FastMCP(name="sentinel-memory")
    commands = MemoryCommands(state)

    # -- workspace ----------------------------------------------------

    @mcp.tool(annotations=_annotations("Open Workspace", read_only=False))
    async def open_workspace(
        path: Annotated[str, Field(description="Absolute path of the workspace root. Memories are stored in <path>/.sentinelops/memory.db.")],
    ) -> dict[str, Any]:
        """Switch the active workspace, creating its memory store on first use."""
        return await commands.open_workspace(path)

    # -- CRUD ---------------------------------------------------------

    @mcp.tool(annotations=_annotations("Create Memory", read_only=False, idempotent=False))
    async def create_memory(
        content: Annotated[str, Field(description="The information to remember.")],
        summary: Annotated[Optional[str], Field(description="A short title for the memory.")] = None,
        memory_type: Annotated[Optional[str], Field(description="'user' (default), 'auto' or 'conversation'.")] = None,
        tags: Annotated[Optional[list[str]], Field(description="Short labels, order preserved.")] = None,
        importance: Annotated[Optional[int], Field(description="Priority, conventionally 1-10. Default: 5.")] = None,
        is_pinned: Annotated[Optional[bool], Field(description="Pin the memory.")] = None,
        source_conversation_id: Annotated[Optional[str], Field(description="Conversation the memory came from.")] = None,
        metadata: Annotated[Optional[dict[str, Any]], Field(description="Opaque JSON metadata.")] = None,
        generate_embedding: Annotated[bool, Field(description="Compute an embedding for semantic search.")] = True,
    ) -> dict[str, Any]:
        """Store a new memory in the active workspace."""
        return await commands.create_memory(
            {
                "content": content,
                "summary": summary,
                "memory_type": memory_type,
                "tags": tags,
                "importance": importance,
                "is_pinned": is_pinned,
                "source_conversation_id": source_conversation_id,
                "metadata": metadata,
                "generate_embedding": generate_embedding,
            }
        )

    @mcp.tool(annotations=_annotations("Get Memory", read_only=True))
    async def get_memory(
        memory_id: Annotated[str, Field(description="The memory ID.")],
    ) -> dict[str, Any]:
        """Fetch one memory by ID."""
        return await commands.get_memory(memory_id)

    @mcp.tool(annotations=_annotations("Update Memory", read_only=False))
    async def update_memory(
        memory_id: Annotated[str, Field(description="The memory ID.")],
        content: Annotated[Optional[str], Field(description="New content.")] = None,
        summary: Annotated[Optional[str], Field(description="New summary.")] = None,
        tags: Annotated[Optional[list[str]], Field(description="New tags (replaces existing).")] = None,
        importance: Annotated[Optional[int], Field(description="New importance.")] = None,
        is_pinned: Annotated[Optional[bool], Field(description="New pinned flag.")] = None,
        metadata: Annotated[Optional[dict[str, Any]], Field(description="New metadata (replaces existing).")] = None,
    ) -> dict[str, Any]:
        """Update a memory in place. Only provided fields change."""
        return await commands.update_memory(
            memory_id,
            {
                "content": content,
                "summary": summary,
                "tags": tags,
                "importance": importance,
                "is_pinned": is_pinned,
                "metadata": metadata,
            },
        )

    @mcp.tool(annotations=_annotations("Delete Memory", read_only=False, destructive=True))
    async def delete_memory(
        memory_id: Annotated[str, Field(description="The memory ID.")],
    ) -> dict[str, Any]:
        """Permanently delete a memory. Returns whether anything was deleted."""
        return await commands.delete_memory(memory_id)

    @mcp.tool(annotations=_annotations("List Memories", read_only=True))
    async def list_memories(
        memory_type: Annotated[Optional[str], Field(description="'auto', 'user', 'conversation', or 'pinned' for every pinned memory.")] = None,
        tags: Annotated[Optional[list[str]], Field(description="Only memories carrying all of these tags.")] = None,
        limit: Annotated[Optional[int], Field(description="Page size. Default: 100.")] = None,
        offset: Annotated[Optional[int], Field(description="Rows to skip.")] = None,
        sort_by: Annotated[Optional[str], Field(description="'importance', 'accessed', or omit for newest first.")] = None,
    ) -> dict[str, Any]:
        """List memories with filters and pagination."""
        return await commands.list_memories(
            memory_type=memory_type,
            tags=tags,
            limit=limit,
            offset=offset,
            sort_by=sort_by,
        )

    # -- search -------------------------------------------------------

    @mcp.tool(annotations=_annotations("Search Memories", read_only=True))
    async def search_memories(
        query: Annotated[str, Field(description="Search text. Used as an FTS5 query for keyword search.")],
        limit: Annotated[Optional[int], Field(description="Maximum results. Default: 10.")] = None,
        threshold: Annotated[Optional[float], Field(description="Minimum cosine similarity for semantic hits. Default: 0.7.")] = None,
        include_embedding: Annotated[Optional[bool], Field(description="Try semantic search first. Default: true.")] = None,
    ) -> dict[str, Any]:
        """Search memories semantically, falling back to keyword search."""
        return await commands.search_memories(query, limit, threshold, include_embedding)

    @mcp.tool(annotations=_annotations("Relevant Memories", read_only=False, idempotent=False))
    async def get_relevant_memories(
        context: Annotated[str, Field(description="Free-form text describing the current task or conversation.")],
        limit: Annotated[Optional[int], Field(description="Maximum results. Defaults to the workspace setting.")] = None,
    ) -> dict[str, Any]:
        """Find memories to inject as context and record that they were used."""
        return await commands.get_relevant_memories(context, limit)

    @mcp.tool(annotations=_annotations("Mark Memories Used", read_only=False, idempotent=False))
    async def mark_memories_used(
        memory_ids: Annotated[list[str], Field(description="IDs of the memories that were used.")],
    ) -> dict[str, Any]:
        """Increment the access count of each memory."""
        return await commands.mark_memories_used(memory_ids)

    @mcp.tool(annotations=_annotations("Embed Memory", read_only=False, idempotent=True))
    async def embed_memory(
        memory_id: Annotated[str, Field(description="The memory ID.")],
    ) -> dict[str, Any]:
        """Compute and store the embedding of an existing memory."""
        return await commands.embed_memory(memory_id)

    # -- extraction ---------------------------------------------------

    @mcp.tool(annotations=_annotations("Extract Memories", read_only=False, idempotent=False))
    async def extract_memories(
        conversation_id: Annotated[str, Field(description="ID of the conversation the messages belong to.")],
        messages: Annotated[list[dict[str, str]], Field(description="Chat messages as {role, content} objects.")],
        model: Annotated[Optional[str], Field(description="Chat model to use for extraction.")] = None,
    ) -> dict[str, Any]:
        """Extract and store memories from a conversation of at least four messages."""
        return await commands.extract_memories(conversation_id, messages, model)

    # -- settings and stats -------------------------------------------

    @mcp.tool(annotations=_annotations("Memory Settings", read_only=True))
    async def get_memory_settings() -> dict[str, Any]:
        """Get the memory settings of the active workspace."""
        return await commands.get_memory_settings()

    @mcp.tool(annotations=_annotations("Update Memory Settings", read_only=False))
    async def update_memory_settings(
        auto_extract_enabled: Annotated[Optional[bool], Field(description="Enable automatic extraction.")] = None,
        extraction_model: Annotated[Optional[str], Field(description="Chat model for extraction.")] = None,
        embedding_model: Annotated[Optional[str], Field(description="Embedding model for new embeddings.")] = None,
        max_memories: Annotated[Optional[int], Field(description="Maximum memories to keep.")] = None,
        context_injection_count: Annotated[Optional[int], Field(description="Memories injected as context.")] = None,
        similarity_threshold: Annotated[Optional[float], Field(description="Minimum similarity for context injection.")] = None,
    ) -> dict[str, Any]:
        """Update workspace memory settings. Only provided fields change."""
        return await commands.update_memory_settings(
            {
                "auto_extract_enabled": auto_extract_enabled,
                "extraction_model": extraction_model,
                "embedding_model": embedding_model,
                "max_memories": max_memories,
                "context_injection_count": context_injection_count,
                "similarity_threshold": similarity_threshold,
            }
        )

    @mcp.tool(annotations=_annotations("Memory Stats", read_only=True))
    async def get_memory_stats() -> dict[str, Any]:
        """Get counts by type, pinned and embedded memories, and average importance."""
        return await commands.get_memory_stats()

    return mcp


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def serve(config: MemoryConfig, http: bool = False) -> None:
    """Open the configured workspace and serve until interrupted."""
    state = AppState.from_config(config)
    state.open_workspace(config.workspace)
    mcp = build_server(state)

    try:
        if not http:
            logger.info("sentinel-memory MCP server v%s on stdio", __version__)
            mcp.run()
            return

        app = mcp.streamable_http_app()
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS", "DELETE"],
            allow_headers=["*"],
            expose_headers=["mcp-session-id", "mcp-protocol-version"],
            max_age=86400,
        )
        logger.info("sentinel-memory MCP server v%s on port %d", __version__, config.port)
        uvicorn.run(app, host="0.0.0.0", port=config.port, log_level="info")
    finally:
        state.close()


def main(argv: list[str] | None = None) -> None:
    """Start the MCP server (``sentinel-memory-server``)."""
    parser = argparse.ArgumentParser(prog="sentinel-memory-server")
    parser.add_argument("--http", action="store_true", help="Serve streamable HTTP instead of stdio.")
    args = parser.parse_args(argv)

    config = MemoryConfig.from_env()
    configure_logging(config.debug)
    serve(config, http=args.http)


if __name__ == "__main__":
    main()
