"""Tests for the FastMCP server wiring."""

from __future__ import annotations

import asyncio

from sentinel_memory.commands import AppState
from sentinel_memory.server import build_server

EXPECTED_TOOLS = {
    "open_workspace",
    "create_memory",
    "get_memory",
    "update_memory",
    "delete_memory",
    "list_memories",
    "search_memories",
    "get_relevant_memories",
    "mark_memories_used",
    "embed_memory",
    "extract_memories",
    "get_memory_settings",
    "update_memory_settings",
    "get_memory_stats",
}


def test_all_commands_are_registered_as_tools(workspace):
    """Every command is exposed as an MCP tool."""
    state = AppState()
    state.open_workspace(workspace)
    try:
        server = build_server(state)
        tools = asyncio.run(server.list_tools())
    finally:
        state.close()
    assert {t.name for t in tools} == EXPECTED_TOOLS


def test_tool_annotations():
    """Read-only and destructive hints match each tool."""
    server = build_server(AppState())
    tools = {t.name: t for t in asyncio.run(server.list_tools())}

    assert tools["get_memory"].annotations.readOnlyHint is True
    assert tools["delete_memory"].annotations.destructiveHint is True
    assert tools["create_memory"].annotations.idempotentHint is False


def test_tool_schemas_expose_parameters():
    """Tool input schemas list the command parameters."""
    server = build_server(AppState())
    tools = {t.name: t for t in asyncio.run(server.list_tools())}

    create = tools["create_memory"].inputSchema
    assert create["required"] == ["content"]
    assert "generate_embedding" in create["properties"]

    search = tools["search_memories"].inputSchema
    assert "query" in search["properties"]
