"""Tests for LLM-driven memory extraction.

The chat completion endpoint is mocked; tests cover response parsing, the
minimum conversation length, and best-effort handling of failures.
"""

from __future__ import annotations

import http.client
import json
import urllib.error
from unittest.mock import MagicMock, patch

from sentinel_memory.extraction import (
    ConversationMessage,
    MemoryExtractor,
    format_conversation,
    parse_extraction_response,
)

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _conversation(n: int = 4) -> list[ConversationMessage]:
    roles = ["user", "assistant"]
    return [ConversationMessage(role=roles[i % 2], content=f"message {i}") for i in range(n)]


def _completion(content: str) -> MagicMock:
    resp = MagicMock()
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    resp.__enter__.return_value.read.return_value = json.dumps(body).encode()
    return resp


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


def test_parse_plain_array():
    """A bare JSON array becomes auto-type inputs."""
    raw = json.dumps(
        [
            {"content": "Uses pnpm", "summary": "Package manager", "tags": ["tooling"], "importance": 7},
            {"content": "Prefers functional components"},
        ]
    )
    inputs = parse_extraction_response(raw, conversation_id="conv-1")
    assert [i.content for i in inputs] == ["Uses pnpm", "Prefers functional components"]
    first = inputs[0]
    assert first.memory_type == "auto"
    assert first.summary == "Package manager"
    assert first.tags == ["tooling"]
    assert first.importance == 7
    assert first.source_conversation_id == "conv-1"
    assert inputs[1].importance is None


def test_parse_fenced_array():
    """Text around the array is ignored."""
    raw = 'Here you go:\n```json\n[{"content": "Deploys with Docker"}]\n```'
    inputs = parse_extraction_response(raw)
    assert [i.content for i in inputs] == ["Deploys with Docker"]


def test_parse_skips_invalid_items():
    """Items without usable content are dropped."""
    raw = json.dumps(
        [
            "just a string",
            {"summary": "no content"},
            {"content": "   "},
            {"content": "kept", "tags": "not-a-list", "importance": "high"},
        ]
    )
    inputs = parse_extraction_response(raw)
    assert len(inputs) == 1
    assert inputs[0].content == "kept"
    assert inputs[0].tags is None
    assert inputs[0].importance is None


def test_parse_garbage_returns_empty():
    """Unparseable replies yield nothing."""
    assert parse_extraction_response("no json here") == []
    assert parse_extraction_response("[not json]") == []
    assert parse_extraction_response("[]") == []


def test_format_conversation():
    """Messages render as role-prefixed paragraphs."""
    text = format_conversation([ConversationMessage("user", "hi"), ConversationMessage("assistant", "hello")])
    assert text == "user: hi\n\nassistant: hello"


def test_message_from_dict():
    """Messages build from plain dicts."""
    msg = ConversationMessage.from_dict({"role": "user", "content": "hi", "id": "x"})
    assert msg == ConversationMessage(role="user", content="hi")


# ------------------------------------------------------------------
# Extractor
# ------------------------------------------------------------------


def test_short_conversation_is_not_sent():
    """Conversations below the minimum never reach the API."""
    extractor = MemoryExtractor(api_key="sk-test")
    with patch("urllib.request.urlopen") as mock_urlopen:
        assert extractor.extract(_conversation(3), "conv") == []
    mock_urlopen.assert_not_called()


def test_no_api_key_extracts_nothing():
    """Without a key no request is made."""
    extractor = MemoryExtractor(api_key=None)
    assert extractor.available is False
    with patch("urllib.request.urlopen") as mock_urlopen:
        assert extractor.extract(_conversation(), "conv") == []
    mock_urlopen.assert_not_called()


def test_extract_sends_chat_completion():
    """The prompt is sent as a chat completion with the chosen model."""
    extractor = MemoryExtractor(api_key="sk-test", base_url="https://llm.example/v1", model="chat-model")
    reply = json.dumps([{"content": "Targets Python 3.12", "importance": 6}])
    with patch("urllib.request.urlopen", return_value=_completion(reply)) as mock_urlopen:
        inputs = extractor.extract(_conversation(), "conv-9", model="override-model")

    assert [i.content for i in inputs] == ["Targets Python 3.12"]
    assert inputs[0].source_conversation_id == "conv-9"

    req = mock_urlopen.call_args[0][0]
    body = json.loads(req.data.decode())
    assert req.full_url == "https://llm.example/v1/chat/completions"
    assert body["model"] == "override-model"
    assert body["temperature"] == 0.3
    assert body["messages"][0]["role"] == "system"
    assert "user: message 0" in body["messages"][1]["content"]


def test_http_failure_extracts_nothing():
    """HTTP errors are logged and yield nothing."""
    extractor = MemoryExtractor(api_key="sk-test")
    error = urllib.error.HTTPError("https://x", 500, "Server Error", hdrs=None, fp=None)
    with patch("urllib.request.urlopen", side_effect=error):
        assert extractor.extract(_conversation(), "conv") == []


def test_broken_http_response_extracts_nothing():
    """A truncated response body is logged and yields no memories."""
    extractor = MemoryExtractor(api_key="sk-test")
    with patch("urllib.request.urlopen", side_effect=http.client.IncompleteRead(b"[")):
        assert extractor.extract(_conversation(), "conv") == []


def test_unexpected_response_shape_extracts_nothing():
    """A completion without choices yields nothing."""
    extractor = MemoryExtractor(api_key="sk-test")
    resp = MagicMock()
    resp.__enter__.return_value.read.return_value = b'{"choices": []}'
    with patch("urllib.request.urlopen", return_value=resp):
        assert extractor.extract(_conversation(), "conv") == []
