"""Tests for keyword, semantic and hybrid search.

Keyword search runs through the FTS5 shadow index; semantic search is an
exact cosine-similarity scan; hybrid search prefers semantic hits and
falls back to keyword hits, never merging the two.
"""

from __future__ import annotations

import pytest

from sentinel_memory.errors import ValidationError
from sentinel_memory.memory import CreateMemoryInput
from sentinel_memory.store import MemoryStore, cosine_similarity, to_fts_query

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _add(store: MemoryStore, content: str, vector: list[float] | None = None, model: str = "test-model", **kwargs):
    mem = store.create(CreateMemoryInput(content=content, **kwargs))
    if vector is not None:
        store.store_embedding(mem.id, vector, model)
    return mem


# ------------------------------------------------------------------
# Cosine similarity
# ------------------------------------------------------------------


def test_cosine_self_similarity_is_one():
    """A vector is perfectly similar to itself."""
    v = [0.3, -1.2, 4.0, 0.0]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_cosine_is_symmetric():
    """Argument order does not matter."""
    a = [1.0, 2.0, 3.0]
    b = [-2.0, 0.5, 1.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_orthogonal_and_opposite():
    """Orthogonal vectors score 0 and opposite vectors -1."""
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ([], [1.0]),
        ([1.0], []),
        ([1.0, 2.0], [1.0]),
        ([0.0, 0.0], [1.0, 1.0]),
    ],
)
def test_cosine_degenerate_inputs_score_zero(a, b):
    """Empty, zero or mismatched vectors score 0."""
    assert cosine_similarity(a, b) == 0.0


# ------------------------------------------------------------------
# Keyword search
# ------------------------------------------------------------------


def test_keyword_search_finds_matches(store):
    """Keyword hits are tagged as keyword matches."""
    hit = _add(store, "loves dark mode UI")
    _add(store, "prefers spaces over tabs")

    results = store.search_keyword("dark mode")
    assert [r.memory.id for r in results] == [hit.id]
    assert results[0].match_type == "keyword"


def test_keyword_search_indexes_summary_and_tags(store):
    """Summary and tags are searchable too."""
    by_summary = _add(store, "body text", summary="Theme preference")
    by_tag = _add(store, "other body", tags=["frontend"])
    assert [r.memory.id for r in store.search_keyword("theme")] == [by_summary.id]
    assert [r.memory.id for r in store.search_keyword("frontend")] == [by_tag.id]


def test_keyword_scores_are_higher_for_better_matches(store):
    """Negated BM25 ranks better matches first."""
    strong = _add(store, "sqlite sqlite sqlite storage")
    weak = _add(store, "sqlite is one of many databases we could use for storage of many things")

    results = store.search_keyword("sqlite")
    assert [r.memory.id for r in results] == [strong.id, weak.id]
    assert results[0].score > results[1].score


def test_keyword_search_respects_limit(store):
    """No more than limit hits are returned."""
    for i in range(5):
        _add(store, f"python note {i}")
    assert len(store.search_keyword("python", limit=3)) == 3


def test_keyword_search_negative_limit_returns_nothing(store):
    """A negative limit is clamped to zero rather than meaning unlimited."""
    _add(store, "python note")
    assert store.search_keyword("python", limit=-1) == []


def test_keyword_search_blank_query(store):
    """A blank query matches nothing."""
    _add(store, "anything")
    assert store.search_keyword("") == []
    assert store.search_keyword("   ") == []


@pytest.mark.parametrize("query", ['"unterminated', "AND", "dark OR"])
def test_keyword_search_rejects_bad_syntax(store, query):
    """Malformed FTS5 syntax raises ValidationError."""
    _add(store, "dark mode")
    with pytest.raises(ValidationError):
        store.search_keyword(query)


def test_to_fts_query_quotes_every_word():
    """Free text becomes an OR of quoted words."""
    assert to_fts_query('what is "dark-mode"?') == '"what" OR "is" OR "dark" OR "mode"'
    assert to_fts_query("?!") is None


def test_to_fts_query_is_safe_for_fts(store):
    """Converted queries never trip the FTS5 parser."""
    mem = _add(store, "dark mode everywhere")
    query = to_fts_query('AND "dark" NOT OR (mode')
    assert [r.memory.id for r in store.search_keyword(query)] == [mem.id]


# ------------------------------------------------------------------
# Semantic search
# ------------------------------------------------------------------


def test_semantic_search_ranks_by_similarity(store):
    """Semantic hits come back in similarity order."""
    close = _add(store, "close", [1.0, 0.1, 0.0])
    far = _add(store, "far", [0.5, 1.0, 0.0])
    _add(store, "opposite", [-1.0, 0.0, 0.0])

    results = store.search_semantic([1.0, 0.0, 0.0], threshold=0.0)
    assert [r.memory.id for r in results] == [close.id, far.id]
    assert all(r.match_type == "semantic" for r in results)
    assert results[0].score > results[1].score


def test_semantic_threshold_above_one_returns_nothing(store):
    """A threshold above 1 excludes everything."""
    _add(store, "identical", [1.0, 2.0, 3.0])
    assert store.search_semantic([1.0, 2.0, 3.0], threshold=1.1) == []


def test_semantic_threshold_is_inclusive(store):
    """A hit exactly at the threshold is kept."""
    mem = _add(store, "orthogonal", [0.0, 1.0])
    results = store.search_semantic([1.0, 0.0], threshold=0.0)
    assert [r.memory.id for r in results] == [mem.id]


def test_semantic_skips_memories_without_embeddings(store):
    """Memories without vectors are not scored."""
    _add(store, "no vector")
    assert store.search_semantic([1.0, 0.0], threshold=-1.0) == []


def test_semantic_ties_break_on_importance_then_recency(store):
    """Equal similarities order by importance, then recency."""
    low = _add(store, "low", [1.0, 0.0], importance=2)
    high = _add(store, "high", [1.0, 0.0], importance=8)
    results = store.search_semantic([1.0, 0.0], threshold=0.5)
    assert [r.memory.id for r in results] == [high.id, low.id]


def test_semantic_respects_limit(store):
    """No more than limit hits are returned."""
    for i in range(6):
        _add(store, f"v{i}", [1.0, float(i) / 10])
    assert len(store.search_semantic([1.0, 0.0], limit=4, threshold=0.0)) == 4


def test_semantic_partitions_by_model(store):
    """Only vectors from the requested model are compared."""
    a = _add(store, "model a", [1.0, 0.0], model="model-a")
    b = _add(store, "model b", [1.0, 0.0], model="model-b")

    only_a = store.search_semantic([1.0, 0.0], threshold=0.5, model="model-a")
    assert [r.memory.id for r in only_a] == [a.id]

    everything = store.search_semantic([1.0, 0.0], threshold=0.5)
    assert {r.memory.id for r in everything} == {a.id, b.id}


def test_semantic_dimension_mismatch_scores_zero(store):
    """Vectors of another dimension never match."""
    _add(store, "3d", [1.0, 0.0, 0.0])
    assert store.search_semantic([1.0, 0.0], threshold=0.1) == []


# ------------------------------------------------------------------
# Hybrid search
# ------------------------------------------------------------------


def test_hybrid_prefers_semantic_results(store):
    """Hybrid search returns semantic hits when there are any."""
    semantic_hit = _add(store, "unrelated words", [1.0, 0.0])
    _add(store, "dark mode")

    results = store.search_hybrid("dark mode", [1.0, 0.0], threshold=0.9)
    assert [r.memory.id for r in results] == [semantic_hit.id]
    assert results[0].match_type == "semantic"


def test_hybrid_falls_back_to_keyword(store):
    """Without semantic hits, keyword hits are returned."""
    mem = _add(store, "loves dark mode UI", [1.0, 0.0])

    results = store.search_hybrid("dark mode", [0.0, 1.0], threshold=0.99)
    assert [r.memory.id for r in results] == [mem.id]
    assert results[0].match_type == "keyword"


def test_hybrid_without_embedding_uses_keyword(store):
    """No query embedding means keyword search."""
    mem = _add(store, "loves dark mode UI")
    results = store.search_hybrid("dark", None)
    assert [r.memory.id for r in results] == [mem.id]
    assert results[0].match_type == "keyword"


def test_hybrid_no_match_returns_empty(store):
    """Nothing matching either way yields an empty list."""
    _add(store, "loves dark mode UI")
    assert store.search_hybrid("kubernetes", None) == []


def test_hybrid_empty_embedding_is_treated_as_absent(store):
    """An empty query vector counts as no embedding."""
    mem = _add(store, "loves dark mode UI", [1.0, 0.0])
    results = store.search_hybrid("dark", [])
    assert [r.memory.id for r in results] == [mem.id]
    assert results[0].match_type == "keyword"


def test_search_does_not_record_access(store):
    """Searching never bumps access counts."""
    mem = _add(store, "dark mode", [1.0, 0.0])
    store.search_hybrid("dark", [1.0, 0.0])
    store.search_keyword("dark")
    assert store.get(mem.id).access_count == 0
