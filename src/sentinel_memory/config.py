"""Environment-driven configuration for sentinel-memory entry points.

Library code never reads the environment; the MCP server and the CLI call
:meth:`MemoryConfig.from_env` once and hand the result down.

Environment variables::

    SENTINEL_WORKSPACE                 Workspace root (default: current directory)
    SENTINEL_MEMORY_EMBEDDING          "openai" (default), "ollama" or "none"
    LLM_BASE_URL                       OpenAI-compatible API base URL
    LLM_API_KEY                        API key for embeddings and extraction
    LLM_MODEL                          Chat model used for extraction
    SENTINEL_MEMORY_OLLAMA_URL         Ollama base URL
    SENTINEL_MEMORY_OLLAMA_MODEL       Ollama embedding model
    SENTINEL_MEMORY_EMBEDDING_TIMEOUT  Seconds to wait for one embedding (default: 30)
    SENTINEL_MEMORY_DEBUG              Enable DEBUG logging when set
    PORT                               HTTP port for the MCP server (default: 8080)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

from .embeddings import EmbeddingProvider, create_embedding_provider
from .extraction import MemoryExtractor

logger = logging.getLogger(__name__)

DEFAULT_LLM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_LLM_MODEL = "meta-llama/llama-3.1-8b-instruct"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_EMBEDDING_TIMEOUT = 30.0
DEFAULT_PORT = 8080


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


@dataclass
class MemoryConfig:
    """Runtime settings resolved from the environment.

    Attributes:
        workspace: Workspace root whose memory store is opened at startup.
        embedding: Embedding provider name.
        llm_base_url: OpenAI-compatible API base URL.
        llm_api_key: API key; ``None`` disables embeddings and extraction.
        llm_model: Chat model for memory extraction.
        ollama_url: Base URL of the Ollama server.
        ollama_model: Ollama embedding model.
        embedding_timeout: Seconds before an embedding call is abandoned.
        debug: Log at DEBUG level.
        port: HTTP port for the streamable HTTP transport.
    """

    workspace: str
    embedding: str = "openai"
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_api_key: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    ollama_url: str = DEFAULT_OLLAMA_URL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    embedding_timeout: float = DEFAULT_EMBEDDING_TIMEOUT
    debug: bool = False
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> MemoryConfig:
        """Build a config from *env* (defaults to ``os.environ``)."""
        env = os.environ if env is None else env
        port_raw = env.get("PORT") or str(DEFAULT_PORT)
        try:
            port = int(port_raw)
        except ValueError:
            logger.warning("Ignoring invalid PORT=%r; using %d", port_raw, DEFAULT_PORT)
            port = DEFAULT_PORT
        return cls(
            workspace=env.get("SENTINEL_WORKSPACE") or os.getcwd(),
            embedding=(env.get("SENTINEL_MEMORY_EMBEDDING") or "openai").lower(),
            llm_base_url=env.get("LLM_BASE_URL") or DEFAULT_LLM_BASE_URL,
            llm_api_key=env.get("LLM_API_KEY") or None,
            llm_model=env.get("LLM_MODEL") or DEFAULT_LLM_MODEL,
            ollama_url=env.get("SENTINEL_MEMORY_OLLAMA_URL") or DEFAULT_OLLAMA_URL,
            ollama_model=env.get("SENTINEL_MEMORY_OLLAMA_MODEL") or DEFAULT_OLLAMA_MODEL,
            embedding_timeout=_float_env(env, "SENTINEL_MEMORY_EMBEDDING_TIMEOUT", DEFAULT_EMBEDDING_TIMEOUT),
            debug=bool(env.get("SENTINEL_MEMORY_DEBUG")),
            port=port,
        )

    def build_embedding_provider(self) -> EmbeddingProvider:
        """Instantiate the configured embedding provider.

        Raises:
            ValueError: :attr:`embedding` names no known provider.
        """
        name = self.embedding.lower().strip()
        if name in ("openai", "openrouter"):
            return create_embedding_provider(name, api_key=self.llm_api_key, base_url=self.llm_base_url)
        if name == "ollama":
            return create_embedding_provider(name, model=self.ollama_model, base_url=self.ollama_url)
        return create_embedding_provider(name)

    def build_extractor(self) -> MemoryExtractor:
        return MemoryExtractor(
            api_key=self.llm_api_key,
            base_url=self.llm_base_url,
            model=self.llm_model,
        )


def configure_logging(debug: bool = False) -> None:
    """Send log records to stderr; stdout is reserved for the MCP stdio channel."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
