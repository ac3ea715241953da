"""Exception hierarchy for sentinel-memory.

Storage and validation failures propagate to the caller as typed errors.
:class:`EmbeddingUnavailable` is the one soft failure: the service layer
catches it, logs it, and carries on without an embedding.
"""

from __future__ import annotations


class MemoryStoreError(Exception):
    """Base class for every error raised by sentinel-memory."""


class NotFoundError(MemoryStoreError):
    """The requested memory does not exist in this workspace."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(f"Memory not found: {memory_id}")
        self.memory_id = memory_id


class StorageError(MemoryStoreError):
    """The underlying database failed (I/O error, corruption, locking)."""


class ValidationError(StorageError):
    """A schema constraint or input check rejected the operation."""


class EmbeddingUnavailable(MemoryStoreError):
    """No embedding could be produced (network, auth, or no credentials)."""


class NoWorkspaceError(MemoryStoreError):
    """A command arrived before any workspace was opened."""

    def __init__(self) -> None:
        super().__init__("No workspace is open")
