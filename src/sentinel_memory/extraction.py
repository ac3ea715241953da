"""Memory extraction from chat conversations.

Asks an OpenAI-compatible chat completion endpoint to distil a conversation
into a JSON array of memories, then turns each item into a
:class:`~sentinel_memory.memory.CreateMemoryInput` of type ``auto``.
Extraction is best-effort: when no API key is configured or the request
fails, nothing is extracted.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from .memory import AUTO_TYPE, CreateMemoryInput

logger = logging.getLogger(__name__)

# Conversations shorter than this carry too little to be worth a request.
MIN_MESSAGES = 4

EXTRACTION_SYSTEM_PROMPT = (
    "You are a memory extraction assistant. Extract important information "
    "from conversations and return it as JSON."
)

EXTRACTION_PROMPT = """Analyze this conversation and extract important information that should be remembered for future interactions.

Focus on:
- User preferences and coding style
- Project-specific knowledge (architecture, patterns, conventions)
- Important decisions made
- Technical details about the codebase
- User's goals and ongoing tasks

For each memory, provide a JSON array with objects containing:
- content: The information to remember (1-3 sentences)
- summary: A brief title (5-10 words)
- tags: Relevant categories as array (e.g., ["preferences", "architecture", "react"])
- importance: 1-10 scale based on how useful this is for future conversations

Return ONLY a valid JSON array. If nothing worth remembering, return empty array [].

Conversation:
{conversation}
"""


@dataclass
class ConversationMessage:
    """One chat turn handed to the extractor."""

    role: str
    content: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMessage:
        return cls(role=str(data.get("role", "")), content=str(data.get("content", "")))


def format_conversation(messages: list[ConversationMessage]) -> str:
    """Render messages as ``role: content`` blocks separated by blank lines."""
    return "\n\n".join(f"{m.role}: {m.content}" for m in messages)


def parse_extraction_response(
    raw: str,
    conversation_id: str | None = None,
) -> list[CreateMemoryInput]:
    """Parse the model's reply into memory inputs.

    Accepts a bare JSON array or one wrapped in a Markdown code fence.
    Items without ``content`` are skipped; anything unparseable yields an
    empty list.

    Args:
        raw: The assistant message text.
        conversation_id: Recorded as provenance on every extracted memory.

    Returns:
        Inputs of type ``auto``, in the order the model listed them.
    """
    text = raw.strip()
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end < start:
        return []
    try:
        items = json.loads(text[start : end + 1])
    except ValueError:
        logger.warning("Extraction response was not valid JSON; ignoring it")
        return []
    if not isinstance(items, list):
        return []

    inputs: list[CreateMemoryInput] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        summary = item.get("summary") if isinstance(item.get("summary"), str) else None
        tags = item.get("tags")
        if isinstance(tags, list):
            tags = [t for t in tags if isinstance(t, str)]
        else:
            tags = None
        importance = item.get("importance")
        if isinstance(importance, bool) or not isinstance(importance, (int, float)):
            importance = None
        inputs.append(
            CreateMemoryInput(
                content=content,
                summary=summary,
                memory_type=AUTO_TYPE,
                tags=tags,
                importance=int(importance) if importance is not None else None,
                is_pinned=False,
                source_conversation_id=conversation_id,
            )
        )
    return inputs


class MemoryExtractor:
    """Client for the chat completion call that performs extraction.

    Args:
        api_key: Bearer token.  Without one, :meth:`complete` returns
            ``None`` and nothing is extracted.
        base_url: OpenAI-compatible API base URL.
        model: Default chat model.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "meta-llama/llama-3.1-8b-instruct",
        timeout: float = 120,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def complete(self, prompt: str, model: str | None = None) -> str | None:
        """Send the extraction prompt and return the assistant's text.

        Returns:
            The reply text, or ``None`` if no API key is configured or the
            request failed (the failure is logged).
        """
        if not self._api_key:
            logger.info("No API key configured; skipping memory extraction")
            return None

        payload = {
            "model": model or self._model,
            "messages": [
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
            "max_tokens": 2048,
        }
        req = urllib.request.Request(
            f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode(),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                data = json.loads(resp.read().decode())
        except urllib.error.HTTPError as exc:
            logger.warning("Extraction request failed with HTTP %s", exc.code)
            return None
        except (urllib.error.URLError, OSError, ValueError, http.client.HTTPException) as exc:
            logger.warning("Extraction request failed: %s", exc)
            return None

        try:
            return data["choices"][0]["message"]["content"] or "[]"
        except (KeyError, IndexError, TypeError):
            logger.warning("Unexpected chat completion response shape")
            return None

    def extract(
        self,
        messages: list[ConversationMessage],
        conversation_id: str | None = None,
        model: str | None = None,
    ) -> list[CreateMemoryInput]:
        """Extract memory inputs from *messages*.

        Conversations with fewer than :data:`MIN_MESSAGES` messages are not
        sent at all.
        """
        if len(messages) < MIN_MESSAGES:
            return []
        prompt = EXTRACTION_PROMPT.format(conversation=format_conversation(messages))
        reply = self.complete(prompt, model=model)
        if reply is None:
            return []
        return parse_extraction_response(reply, conversation_id=conversation_id)

    def __repr__(self) -> str:
        return f"MemoryExtractor(model={self._model!r}, base_url={self._base_url!r})"
