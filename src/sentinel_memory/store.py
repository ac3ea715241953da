"""SQLite storage backend for sentinel-memory.

One :class:`MemoryStore` owns the memory database of one workspace.  It
provides CRUD, paginated listing, keyword search through the FTS5 shadow
index, brute-force semantic search over stored embeddings, the hybrid
fallback policy between the two, access tracking, settings and stats.

Every operation runs on a single shared connection under a lock that is
held for exactly one statement or transaction.  Nothing in this module
performs network I/O.
"""

from __future__ import annotations

import builtins
import contextlib
import hashlib
import json
import math
import os
import re
import sqlite3
import struct
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from .errors import NotFoundError, StorageError, ValidationError
from .memory import (
    AUTO_TYPE,
    CONVERSATION_TYPE,
    DEFAULT_IMPORTANCE,
    KEYWORD_MATCH,
    PINNED_FILTER,
    SEMANTIC_MATCH,
    SORT_ACCESSED,
    SORT_IMPORTANCE,
    USER_TYPE,
    CreateMemoryInput,
    Memory,
    MemoryFilters,
    MemorySettings,
    MemoryStats,
    MemoryWithScore,
    UpdateMemoryInput,
    UpdateSettingsInput,
    utcnow_iso,
)

# ---------------------------------------------------------------------------
# Database location and workspace identity
# ---------------------------------------------------------------------------

STORE_DIRNAME = ".sentinelops"
STORE_FILENAME = "memory.db"

_COLUMNS = """
    id, workspace_id, content, summary, type, source_conversation_id,
    source_message_ids, embedding_model, tags, importance, access_count,
    last_accessed_at, created_at, updated_at, expires_at, is_pinned, metadata,
    embedding IS NOT NULL AS has_embedding
"""

_ORDER_BY: dict[str | None, str] = {
    SORT_IMPORTANCE: "importance DESC, created_at DESC, rowid DESC",
    SORT_ACCESSED: "COALESCE(last_accessed_at, created_at) DESC, rowid DESC",
    None: "created_at DESC, rowid DESC",
}

# OperationalError messages that come from a malformed MATCH expression
# rather than from the database itself.
_FTS_QUERY_ERRORS = ("fts5:", "syntax error", "unterminated string", "no such column", "unknown special query")

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def workspace_id_for(workspace_root: str | os.PathLike[str]) -> str:
    """Derive the stable workspace identifier from its absolute path.

    Args:
        workspace_root: The workspace directory.

    Returns:
        The first 8 bytes of the SHA-256 of the absolute path, hex-encoded.
    """
    path = os.path.abspath(os.path.expanduser(str(workspace_root)))
    return hashlib.sha256(path.encode("utf-8")).hexdigest()[:16]


def default_db_path(workspace_root: str | os.PathLike[str]) -> str:
    """Return ``<workspace>/.sentinelops/memory.db``."""
    root = os.path.abspath(os.path.expanduser(str(workspace_root)))
    return os.path.join(root, STORE_DIRNAME, STORE_FILENAME)


def _new_id() -> str:
    """Generate a new unique memory identifier."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Vector helpers
# ---------------------------------------------------------------------------


def _pack_embedding(embedding: list[float] | None) -> bytes | None:
    """Pack a list of floats into a compact binary blob (little-endian f32).

    Args:
        embedding: Vector of floats, or ``None``.

    Returns:
        Raw bytes suitable for SQLite BLOB storage, or ``None``.
    """
    if embedding is None or len(embedding) == 0:
        return None
    return struct.pack(f"<{len(embedding)}f", *embedding)


def _unpack_embedding(blob: bytes | None) -> list[float] | None:
    """Unpack a binary blob back into a list of floats.

    Trailing bytes that do not form a whole float are ignored.
    """
    if blob is None:
        return None
    count = len(blob) // 4  # 4 bytes per float32
    return list(struct.unpack(f"<{count}f", blob[: count * 4]))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors in pure Python.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        ``dot(a, b) / (|a| * |b|)`` in the range ``[-1, 1]``.  Returns
        ``0.0`` if either vector is empty, the lengths differ, or either
        vector has zero magnitude.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    mag_a = 0.0
    mag_b = 0.0
    for ai, bi in zip(a, b):
        dot += ai * bi
        mag_a += ai * ai
        mag_b += bi * bi

    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0

    return dot / (math.sqrt(mag_a) * math.sqrt(mag_b))


def to_fts_query(text: str) -> str | None:
    """Turn free text into a safe FTS5 query matching any of its words.

    Each word is quoted so punctuation and FTS5 operators in *text* are
    matched literally.

    Returns:
        An ``OR`` query, or ``None`` if *text* contains no words.
    """
    words = _WORD_RE.findall(text)
    if not words:
        return None
    return " OR ".join('"' + w.replace('"', '""') + '"' for w in words)


def _dump_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _load_json(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


class MemoryStore:
    """Thread-safe SQLite storage for the memories of one workspace.

    Opening a store for a workspace that has never been seen creates the
    ``.sentinelops`` directory, the database file, the schema and the
    default settings row.  Opening it again only connects.

    Args:
        workspace_root: The workspace directory.  Its absolute path
            determines :attr:`workspace_id`.
        path: Override for the database file location.  Defaults to
            ``<workspace_root>/.sentinelops/memory.db``.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __init__(
        self,
        workspace_root: str | os.PathLike[str],
        path: str | os.PathLike[str] | None = None,
    ) -> None:
        self._workspace_root = os.path.abspath(os.path.expanduser(str(workspace_root)))
        self._workspace_id = workspace_id_for(self._workspace_root)
        raw_path = str(path) if path is not None else default_db_path(self._workspace_root)
        self._path = os.path.realpath(os.path.expanduser(raw_path))
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, mode=0o700, exist_ok=True)
            with contextlib.suppress(OSError):
                os.chmod(parent, 0o700)

        from .migrations import ensure_schema, ensure_settings_row

        with self._lock:
            conn = self._get_connection()
            try:
                self._schema_version = ensure_schema(conn)
                ensure_settings_row(conn, self._workspace_id, utcnow_iso())
                conn.commit()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to initialise memory store at {self._path}: {exc}") from exc

    @property
    def path(self) -> str:
        """Absolute path of the database file."""
        return self._path

    @property
    def workspace_root(self) -> str:
        return self._workspace_root

    @property
    def workspace_id(self) -> str:
        """Identifier every row read or written by this store is scoped to."""
        return self._workspace_id

    @property
    def schema_version(self) -> int:
        return self._schema_version

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _get_connection(self) -> sqlite3.Connection:
        """Return (or create) the shared SQLite connection.

        Callers must hold ``self._lock``.
        """
        if self._conn is None:
            try:
                conn = sqlite3.connect(self._path, check_same_thread=False, timeout=10.0)
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA foreign_keys=ON;")
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to open database {self._path}: {exc}") from exc
            conn.row_factory = sqlite3.Row
            self._conn = conn
        return self._conn

    @contextmanager
    def _cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        """Yield a cursor under the store lock; commit on success.

        ``sqlite3`` errors are translated into :class:`ValidationError`
        (constraint violations, malformed full-text queries) or
        :class:`StorageError` (everything else).
        """
        with self._lock:
            conn = self._get_connection()
            cur = conn.cursor()
            try:
                yield cur
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise _translate_error(exc) from exc
            except Exception:
                conn.rollback()
                raise
            finally:
                cur.close()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, data: CreateMemoryInput) -> Memory:
        """Insert a new memory and return the row as persisted.

        Nothing is validated beyond the schema constraints; an unknown
        ``memory_type`` is rejected by the ``CHECK`` constraint.

        Args:
            data: The fields of the new memory.

        Returns:
            The stored :class:`Memory`, re-read from the database.

        Raises:
            ValidationError: A schema constraint rejected the row.
            StorageError: The database failed.
        """
        memory_id = _new_id()
        now = utcnow_iso()
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO memories
                    (id, workspace_id, content, summary, type,
                     source_conversation_id, source_message_ids, tags,
                     importance, is_pinned, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    memory_id,
                    self._workspace_id,
                    data.content,
                    data.summary,
                    data.memory_type or USER_TYPE,
                    data.source_conversation_id,
                    _dump_json(data.source_message_ids),
                    _dump_json(data.tags),
                    data.importance if data.importance is not None else DEFAULT_IMPORTANCE,
                    int(bool(data.is_pinned)),
                    _dump_json(data.metadata),
                    now,
                    now,
                ),
            )
            row = self._select_one(cur, memory_id)
        if row is None:
            raise StorageError(f"Memory {memory_id} not found after creation")
        return self._row_to_memory(row)

    def get(self, memory_id: str) -> Memory | None:
        """Retrieve a memory of this workspace by ID.

        Returns:
            The :class:`Memory`, or ``None`` if it does not exist or
            belongs to another workspace.
        """
        with self._cursor() as cur:
            row = self._select_one(cur, memory_id)
        if row is None:
            return None
        return self._row_to_memory(row)

    def update(self, memory_id: str, changes: UpdateMemoryInput) -> Memory:
        """Apply a partial update and return the updated memory.

        Fields set on *changes* replace the stored values; fields left as
        ``None`` are preserved.  ``updated_at`` is always refreshed.  New
        content drops the stored embedding and its model, since the vector
        no longer describes the text.

        Raises:
            NotFoundError: No such memory in this workspace.
        """
        with self._cursor() as cur:
            existing = self._select_one(cur, memory_id)
            if existing is None:
                raise NotFoundError(memory_id)
            current = self._row_to_memory(existing)
            merged = {
                "content": current.content,
                "summary": current.summary,
                "tags": current.tags,
                "importance": current.importance,
                "is_pinned": current.is_pinned,
                "metadata": current.metadata,
            }
            merged.update(changes.present())
            content_changed = merged["content"] != current.content
            cur.execute(
                """
                UPDATE memories
                SET content = ?, summary = ?, tags = ?, importance = ?,
                    is_pinned = ?, metadata = ?, updated_at = ?,
                    embedding = CASE WHEN ? THEN NULL ELSE embedding END,
                    embedding_model = CASE WHEN ? THEN NULL ELSE embedding_model END
                WHERE id = ? AND workspace_id = ?
                """,
                (
                    merged["content"],
                    merged["summary"],
                    _dump_json(merged["tags"]),
                    merged["importance"],
                    int(bool(merged["is_pinned"])),
                    _dump_json(merged["metadata"]),
                    utcnow_iso(),
                    int(content_changed),
                    int(content_changed),
                    memory_id,
                    self._workspace_id,
                ),
            )
            row = self._select_one(cur, memory_id)
        if row is None:
            raise NotFoundError(memory_id)
        return self._row_to_memory(row)

    def delete(self, memory_id: str) -> bool:
        """Delete a memory by its ID.

        The FTS5 entry is removed by the ``memories_ad`` trigger in the
        same transaction.

        Returns:
            ``True`` if a row was deleted, ``False`` if the ID was not found.
        """
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM memories WHERE id = ? AND workspace_id = ?",
                (memory_id, self._workspace_id),
            )
            return cur.rowcount > 0

    def list(self, filters: MemoryFilters | None = None) -> tuple[builtins.list[Memory], int]:
        """List memories with filters, sort order and pagination.

        Args:
            filters: Filter, sort and page options.  Defaults to the first
                100 memories, newest first.

        Returns:
            A ``(page, total)`` tuple where *total* counts every memory
            matching the filters, independent of limit and offset.
        """
        filters = filters or MemoryFilters()
        conditions = ["workspace_id = ?"]
        params: list[Any] = [self._workspace_id]

        if filters.memory_type is not None:
            if filters.memory_type == PINNED_FILTER:
                conditions.append("is_pinned = 1")
            else:
                conditions.append("type = ?")
                params.append(filters.memory_type)

        if filters.is_pinned is not None:
            conditions.append("is_pinned = ?")
            params.append(int(filters.is_pinned))

        for tag in filters.tags or []:
            conditions.append(
                "EXISTS (SELECT 1 FROM json_each(memories.tags) WHERE json_each.value = ?)"
            )
            params.append(tag)

        where_clause = " AND ".join(conditions)
        order_by = _ORDER_BY.get(filters.sort_by, _ORDER_BY[None])

        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) FROM memories WHERE {where_clause}", params)
            total: int = cur.fetchone()[0]
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM memories
                WHERE {where_clause}
                ORDER BY {order_by}
                LIMIT ? OFFSET ?
                """,
                [*params, max(0, filters.limit), max(0, filters.offset)],
            )
            rows = cur.fetchall()
        return [self._row_to_memory(r) for r in rows], total

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_keyword(self, query: str, limit: int = 10) -> builtins.list[MemoryWithScore]:
        """Rank memories against *query* using the FTS5 index.

        The query is handed to FTS5 unchanged.  BM25 returns lower values
        for better matches, so the exposed score is negated to keep
        "higher is better" across match types.

        Raises:
            ValidationError: FTS5 rejected the query syntax.
        """
        if not query or not query.strip():
            return []
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT m.id, m.workspace_id, m.content, m.summary, m.type,
                       m.source_conversation_id, m.source_message_ids,
                       m.embedding_model, m.tags, m.importance, m.access_count,
                       m.last_accessed_at, m.created_at, m.updated_at,
                       m.expires_at, m.is_pinned, m.metadata,
                       m.embedding IS NOT NULL AS has_embedding,
                       bm25(memories_fts) AS bm25_score
                FROM memories_fts
                JOIN memories m ON memories_fts.rowid = m.rowid
                WHERE memories_fts MATCH ? AND m.workspace_id = ?
                ORDER BY bm25_score
                LIMIT ?
                """,
                (query, self._workspace_id, max(0, limit)),
            )
            rows = cur.fetchall()
        return [
            MemoryWithScore(
                memory=self._row_to_memory(r),
                score=-float(r["bm25_score"]),
                match_type=KEYWORD_MATCH,
            )
            for r in rows
        ]

    def search_semantic(
        self,
        query_embedding: builtins.list[float],
        limit: int = 10,
        threshold: float = 0.7,
        model: str | None = None,
    ) -> builtins.list[MemoryWithScore]:
        """Exact cosine-similarity search over every stored embedding.

        Args:
            query_embedding: The query vector.
            limit: Maximum number of results.
            threshold: Results scoring strictly below this are dropped.
            model: When given, only vectors produced by this model are
                compared.

        Returns:
            Matches sorted by similarity, then importance, then recency.
        """
        sql = f"SELECT {_COLUMNS}, embedding FROM memories WHERE workspace_id = ? AND embedding IS NOT NULL"
        params: list[Any] = [self._workspace_id]
        if model is not None:
            sql += " AND embedding_model = ?"
            params.append(model)

        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()

        results: list[MemoryWithScore] = []
        for row in rows:
            vector = _unpack_embedding(row["embedding"]) or []
            score = cosine_similarity(query_embedding, vector)
            if score < threshold:
                continue
            results.append(
                MemoryWithScore(
                    memory=self._row_to_memory(row),
                    score=score,
                    match_type=SEMANTIC_MATCH,
                )
            )

        # Two stable passes: id ascending as the last resort, then the
        # descending keys.
        results.sort(key=lambda r: r.memory.id)
        results.sort(
            key=lambda r: (r.score, r.memory.importance, r.memory.created_at),
            reverse=True,
        )
        return results[: max(0, limit)]

    def search_hybrid(
        self,
        query: str,
        query_embedding: builtins.list[float] | None = None,
        limit: int = 10,
        threshold: float = 0.7,
        model: str | None = None,
    ) -> builtins.list[MemoryWithScore]:
        """Semantic search first, keyword search if that finds nothing.

        Semantic results are returned verbatim when there is at least one;
        the two result sets are never merged.
        """
        if query_embedding:
            semantic = self.search_semantic(query_embedding, limit, threshold, model=model)
            if semantic:
                return semantic
        return self.search_keyword(query, limit)

    # ------------------------------------------------------------------
    # Embeddings and access tracking
    # ------------------------------------------------------------------

    def store_embedding(self, memory_id: str, embedding: builtins.list[float], model: str) -> None:
        """Attach an embedding vector and its model name to a memory.

        Raises:
            ValidationError: *embedding* is empty or *model* is blank.
            NotFoundError: No such memory in this workspace.
        """
        blob = _pack_embedding(embedding)
        if blob is None:
            raise ValidationError("Embedding vector must not be empty")
        if not model:
            raise ValidationError("Embedding model name must not be empty")
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE memories
                SET embedding = ?, embedding_model = ?, updated_at = ?
                WHERE id = ? AND workspace_id = ?
                """,
                (blob, model, utcnow_iso(), memory_id, self._workspace_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(memory_id)

    def get_embedding(self, memory_id: str) -> tuple[builtins.list[float], str] | None:
        """Return ``(vector, model)`` for a memory, or ``None`` if it has none."""
        with self._cursor() as cur:
            cur.execute(
                "SELECT embedding, embedding_model FROM memories WHERE id = ? AND workspace_id = ?",
                (memory_id, self._workspace_id),
            )
            row = cur.fetchone()
        if row is None or row["embedding"] is None:
            return None
        return _unpack_embedding(row["embedding"]) or [], row["embedding_model"]

    def increment_access(self, memory_id: str) -> None:
        """Record that a memory was used: bump the count, stamp the time.

        ``updated_at`` is left alone; this is not an edit.

        Raises:
            NotFoundError: No such memory in this workspace.
        """
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE memories
                SET access_count = access_count + 1,
                    last_accessed_at = ?
                WHERE id = ? AND workspace_id = ?
                """,
                (utcnow_iso(), memory_id, self._workspace_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(memory_id)

    # ------------------------------------------------------------------
    # Settings and stats
    # ------------------------------------------------------------------

    def get_settings(self) -> MemorySettings:
        """Return this workspace's settings, creating the default row if absent."""
        from .migrations import ensure_settings_row

        with self._cursor() as cur:
            ensure_settings_row(cur.connection, self._workspace_id, utcnow_iso())
            row = self._select_settings(cur)
        return self._row_to_settings(row)

    def update_settings(self, changes: UpdateSettingsInput) -> MemorySettings:
        """Apply a partial settings update; unspecified fields keep their value."""
        from .migrations import ensure_settings_row

        with self._cursor() as cur:
            ensure_settings_row(cur.connection, self._workspace_id, utcnow_iso())
            current = self._row_to_settings(self._select_settings(cur))
            merged = {
                "auto_extract_enabled": current.auto_extract_enabled,
                "extraction_model": current.extraction_model,
                "embedding_model": current.embedding_model,
                "max_memories": current.max_memories,
                "context_injection_count": current.context_injection_count,
                "similarity_threshold": current.similarity_threshold,
            }
            merged.update(changes.present())
            cur.execute(
                """
                UPDATE memory_settings
                SET auto_extract_enabled = ?, extraction_model = ?,
                    embedding_model = ?, max_memories = ?,
                    context_injection_count = ?, similarity_threshold = ?,
                    updated_at = ?
                WHERE workspace_id = ?
                """,
                (
                    int(bool(merged["auto_extract_enabled"])),
                    merged["extraction_model"],
                    merged["embedding_model"],
                    merged["max_memories"],
                    merged["context_injection_count"],
                    merged["similarity_threshold"],
                    utcnow_iso(),
                    self._workspace_id,
                ),
            )
            row = self._select_settings(cur)
        return self._row_to_settings(row)

    def get_stats(self) -> MemoryStats:
        """Compute aggregate counts for this workspace."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT COUNT(*) AS total_count,
                       COALESCE(SUM(type = ?), 0) AS auto_count,
                       COALESCE(SUM(type = ?), 0) AS user_count,
                       COALESCE(SUM(type = ?), 0) AS conversation_count,
                       COALESCE(SUM(is_pinned = 1), 0) AS pinned_count,
                       COALESCE(SUM(embedding IS NOT NULL), 0) AS with_embeddings,
                       COALESCE(AVG(importance), 0) AS avg_importance
                FROM memories
                WHERE workspace_id = ?
                """,
                (AUTO_TYPE, USER_TYPE, CONVERSATION_TYPE, self._workspace_id),
            )
            row = cur.fetchone()
        return MemoryStats(
            total_count=row["total_count"],
            auto_count=row["auto_count"],
            user_count=row["user_count"],
            conversation_count=row["conversation_count"],
            pinned_count=row["pinned_count"],
            with_embeddings=row["with_embeddings"],
            avg_importance=float(row["avg_importance"]),
        )

    def close(self) -> None:
        """Close the database connection, if open."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _select_one(self, cur: sqlite3.Cursor, memory_id: str) -> sqlite3.Row | None:
        cur.execute(
            f"SELECT {_COLUMNS} FROM memories WHERE id = ? AND workspace_id = ?",
            (memory_id, self._workspace_id),
        )
        return cur.fetchone()

    def _select_settings(self, cur: sqlite3.Cursor) -> sqlite3.Row:
        cur.execute(
            """
            SELECT workspace_id, auto_extract_enabled, extraction_model,
                   embedding_model, max_memories, context_injection_count,
                   similarity_threshold, created_at, updated_at
            FROM memory_settings WHERE workspace_id = ?
            """,
            (self._workspace_id,),
        )
        return cur.fetchone()

    @staticmethod
    def _row_to_memory(row: sqlite3.Row) -> Memory:
        """Convert a database row into a :class:`Memory` instance."""
        return Memory(
            id=row["id"],
            workspace_id=row["workspace_id"],
            content=row["content"],
            summary=row["summary"],
            memory_type=row["type"],
            source_conversation_id=row["source_conversation_id"],
            source_message_ids=_load_json(row["source_message_ids"]),
            embedding_model=row["embedding_model"],
            has_embedding=bool(row["has_embedding"]),
            tags=_load_json(row["tags"]),
            importance=row["importance"],
            access_count=row["access_count"],
            last_accessed_at=row["last_accessed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            expires_at=row["expires_at"],
            is_pinned=bool(row["is_pinned"]),
            metadata=_load_json(row["metadata"]),
        )

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> MemorySettings:
        return MemorySettings(
            workspace_id=row["workspace_id"],
            auto_extract_enabled=bool(row["auto_extract_enabled"]),
            extraction_model=row["extraction_model"],
            embedding_model=row["embedding_model"],
            max_memories=row["max_memories"],
            context_injection_count=row["context_injection_count"],
            similarity_threshold=float(row["similarity_threshold"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def __repr__(self) -> str:  # pragma: no cover
        return f"MemoryStore(workspace={self._workspace_root!r}, path={self._path!r})"


def _translate_error(exc: sqlite3.Error) -> StorageError:
    """Map a ``sqlite3`` exception onto the sentinel-memory hierarchy."""
    if isinstance(exc, sqlite3.IntegrityError):
        return ValidationError(str(exc))
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        if any(marker in message for marker in _FTS_QUERY_ERRORS):
            return ValidationError(f"Invalid search query: {exc}")
    return StorageError(str(exc))
