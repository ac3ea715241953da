"""Pluggable embedding providers for sentinel-memory.

Each provider implements one call: given text (and optionally a model
name), return an :class:`EmbeddingResult` holding the vector and the model
that produced it.  Every failure, including missing credentials, is raised
as :class:`~sentinel_memory.errors.EmbeddingUnavailable` so callers can
degrade to keyword search instead of failing.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from .errors import EmbeddingUnavailable
from .memory import DEFAULT_EMBEDDING_MODEL

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    """A computed embedding and the model name that produced it."""

    vector: list[float]
    model: str


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class EmbeddingProvider(ABC):
    """Abstract base class for all embedding providers.

    Implementations are synchronous and may block on network I/O; the
    service layer runs them in a worker thread.
    """

    #: Whether the workspace's ``embedding_model`` setting names a model
    #: this provider can serve.
    uses_workspace_model: bool = False

    @abstractmethod
    def embed(self, text: str, model: str | None = None) -> EmbeddingResult:
        """Compute the embedding vector for a single piece of text.

        Args:
            text: The input text to embed.
            model: Model to use, or ``None`` for the provider default.

        Returns:
            The vector and the model name that produced it.

        Raises:
            EmbeddingUnavailable: The provider could not produce a vector.
        """

    @property
    def available(self) -> bool:
        """Whether the provider is configured well enough to try a request."""
        return True


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------


def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    timeout: float = 60,
) -> dict[str, Any]:
    """POST *payload* as JSON and decode the JSON response.

    Raises:
        EmbeddingUnavailable: Transport failure, HTTP error status, or a
            body that is not JSON.
    """
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except urllib.error.HTTPError as exc:
        body = exc.read().decode(errors="replace") if exc.fp else ""
        raise EmbeddingUnavailable(f"HTTP {exc.code} from {url}: {body[:200]}") from exc
    except urllib.error.URLError as exc:
        raise EmbeddingUnavailable(f"Could not connect to {url}: {exc.reason}") from exc
    except (OSError, ValueError, http.client.HTTPException) as exc:
        raise EmbeddingUnavailable(f"Bad response from {url}: {exc}") from exc


# ---------------------------------------------------------------------------
# OpenAI-compatible (OpenAI, OpenRouter, local gateways)
# ---------------------------------------------------------------------------


class OpenAIEmbedding(EmbeddingProvider):
    """Embedding provider for any OpenAI-compatible ``/embeddings`` endpoint.

    A missing API key is not a construction error: the provider reports
    itself unavailable and :meth:`embed` raises
    :class:`EmbeddingUnavailable`, which callers treat as "no embedding".

    Args:
        api_key: Bearer token for the API.
        model: Default embedding model name.
        base_url: API base URL (OpenRouter by default).
        timeout: Request timeout in seconds.
    """

    uses_workspace_model = True

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 60,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def embed(self, text: str, model: str | None = None) -> EmbeddingResult:
        """Compute the embedding via ``POST {base_url}/embeddings``."""
        if not self._api_key:
            raise EmbeddingUnavailable("No API key configured for embeddings")

        model_name = model or self._model
        logger.debug("Requesting embedding (%d chars) from %s model=%s", len(text), self._base_url, model_name)
        data = _post_json(
            f"{self._base_url}/embeddings",
            {"model": model_name, "input": text},
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
        )
        try:
            vector = [float(v) for v in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingUnavailable(f"Unexpected embeddings response: {str(data)[:200]}") from exc
        if not vector:
            raise EmbeddingUnavailable("Embeddings API returned an empty vector")
        return EmbeddingResult(vector=vector, model=model_name)

    def __repr__(self) -> str:
        return f"OpenAIEmbedding(model={self._model!r}, base_url={self._base_url!r})"


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------


class OllamaEmbedding(EmbeddingProvider):
    """Embedding provider using a locally-running Ollama server.

    Args:
        model: The Ollama model name to use for embeddings.
        base_url: The Ollama API base URL.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        timeout: float = 60,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def embed(self, text: str, model: str | None = None) -> EmbeddingResult:
        """Compute the embedding via the Ollama ``/api/embed`` endpoint."""
        model_name = model or self._model
        data = _post_json(
            f"{self._base_url}/api/embed",
            {"model": model_name, "input": text},
            timeout=self._timeout,
        )
        try:
            vector = [float(v) for v in data["embeddings"][0]]
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingUnavailable(f"Ollama returned an unexpected response: {str(data)[:200]}") from exc
        if not vector:
            raise EmbeddingUnavailable("Ollama returned an empty vector")
        return EmbeddingResult(vector=vector, model=model_name)

    def __repr__(self) -> str:
        return f"OllamaEmbedding(model={self._model!r}, base_url={self._base_url!r})"


# ---------------------------------------------------------------------------
# Noop (keyword-only)
# ---------------------------------------------------------------------------


class NoopEmbedding(EmbeddingProvider):
    """A provider that never produces embeddings.

    Use this when only keyword search is wanted.  Every call raises
    :class:`EmbeddingUnavailable`.
    """

    @property
    def available(self) -> bool:
        return False

    def embed(self, text: str, model: str | None = None) -> EmbeddingResult:
        raise EmbeddingUnavailable("Embeddings are disabled")

    def __repr__(self) -> str:
        return "NoopEmbedding()"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_PROVIDER_ALIASES: dict[str, type[EmbeddingProvider]] = {
    "openai": OpenAIEmbedding,
    "openrouter": OpenAIEmbedding,
    "ollama": OllamaEmbedding,
    "none": NoopEmbedding,
    "noop": NoopEmbedding,
}


def create_embedding_provider(name: str, **kwargs: Any) -> EmbeddingProvider:
    """Create an embedding provider by name.

    Args:
        name: ``"openai"`` / ``"openrouter"``, ``"ollama"``, or
            ``"none"`` / ``"noop"``.
        **kwargs: Forwarded to the provider's constructor.

    Raises:
        ValueError: If *name* is not a recognised provider.

    Examples::

        provider = create_embedding_provider("openai", api_key="sk-...")
        provider = create_embedding_provider("ollama", model="nomic-embed-text")
        provider = create_embedding_provider("none")
    """
    cls = _PROVIDER_ALIASES.get(name.lower().strip())
    if cls is None:
        supported = ", ".join(sorted(_PROVIDER_ALIASES))
        raise ValueError(
            f"Unknown embedding provider {name!r}. "
            f"Supported providers: {supported}"
        )
    return cls(**kwargs)
