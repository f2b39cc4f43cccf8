"""
Tests for the SQLite structured index.
"""

import pytest

from memory_local.core.dao import (
    MATCH_ANY,
    StructuredIndex,
    inclusive_upper_bound,
    tokenize_query,
)
from memory_local.core.errors import PersistenceError
from memory_local.core.schema import MemoryRecord, new_record


def make_record(record_id, text, importance=0.5, category="fact",
                created_at="2026-03-01T10:00:00.000000+00:00", **kwargs):
    return MemoryRecord(id=record_id, text=text, category=category, importance=importance,
                        created_at=created_at, updated_at=created_at, **kwargs)


@pytest.fixture
def index(tmp_path):
    return StructuredIndex(tmp_path / "memory.db")


class TestTokenizeQuery:

    def test_lowercases_and_drops_stop_words(self):
        assert tokenize_query("What is my Favorite COLOR?") == ["favorite", "color"]

    def test_drops_single_characters_and_duplicates(self):
        assert tokenize_query("a tea b TEA tea") == ["tea"]

    def test_empty_query_has_no_tokens(self):
        assert tokenize_query("") == []
        assert tokenize_query(None) == []
        assert tokenize_query("what is the") == []

    def test_inclusive_upper_bound(self):
        assert inclusive_upper_bound("2026-03-01") == "2026-03-01T23:59:59.999999+00:00"
        assert inclusive_upper_bound("2026-03-01T12:00:00+00:00") == "2026-03-01T12:00:00+00:00"


class TestInsertAndGet:

    def test_round_trip_preserves_fields(self, index):
        record = new_record("User lives in Winterthur", category="fact", importance=0.8,
                            session_key="s-1", metadata={"source": "chat", "turn": 3})
        index.insert(record)

        fetched = index.get(record.id)
        assert fetched == record

    def test_get_missing_returns_none(self, index):
        assert index.get("missing") is None

    def test_duplicate_id_is_persistence_error(self, index):
        record = new_record("User likes tea")
        index.insert(record)
        with pytest.raises(PersistenceError):
            index.insert(record)

    def test_get_by_ids_skips_missing(self, index):
        index.insert(make_record("a", "alpha"))
        index.insert(make_record("b", "beta"))

        found = index.get_by_ids(["a", "missing", "b", "a"])
        assert set(found) == {"a", "b"}
        assert found["b"].text == "beta"


class TestQuery:

    @pytest.fixture
    def populated(self, index):
        index.insert(make_record("low", "Coffee in the morning", importance=0.2,
                                 created_at="2026-03-01T08:00:00.000000+00:00"))
        index.insert(make_record("high", "Coffee with Emma", importance=0.9, category="entity",
                                 created_at="2026-03-02T08:00:00.000000+00:00"))
        index.insert(make_record("mid-old", "Tea at noon", importance=0.5,
                                 created_at="2026-03-01T12:00:00.000000+00:00"))
        index.insert(make_record("mid-new", "Tea and coffee", importance=0.5,
                                 created_at="2026-03-03T12:00:00.000000+00:00"))
        return index

    def test_orders_by_importance_then_recency(self, populated):
        ids = [r.id for r in populated.query()]
        assert ids == ["high", "mid-new", "mid-old", "low"]

    def test_tokens_match_case_insensitive_substrings(self, populated):
        ids = [r.id for r in populated.query(["coffee"])]
        assert ids == ["high", "mid-new", "low"]

        ids = [r.id for r in populated.query(["emm"])]
        assert ids == ["high"]

    def test_all_tokens_must_match_by_default(self, populated):
        ids = [r.id for r in populated.query(["tea", "coffee"])]
        assert ids == ["mid-new"]

    def test_any_token_match(self, populated):
        ids = [r.id for r in populated.query(["emma", "noon"], match=MATCH_ANY)]
        assert ids == ["high", "mid-old"]

    def test_category_filter(self, populated):
        assert [r.id for r in populated.query(category="entity")] == ["high"]

    def test_date_range_is_inclusive(self, populated):
        ids = [r.id for r in populated.query(date_from="2026-03-01T12:00:00.000000+00:00",
                                             date_to="2026-03-02T08:00:00.000000+00:00")]
        assert ids == ["high", "mid-old"]

    def test_date_only_upper_bound_covers_whole_day(self, populated):
        ids = [r.id for r in populated.query(date_to="2026-03-01")]
        assert ids == ["mid-old", "low"]

    def test_limit(self, populated):
        assert len(populated.query(limit=2)) == 2

    def test_no_match_returns_empty(self, populated):
        assert populated.query(["switzerland"]) == []

    def test_literal_wildcards_are_not_patterns(self, index):
        index.insert(make_record("pct", "Battery at 50% today"))
        index.insert(make_record("other", "Battery at 50 today"))
        assert [r.id for r in index.query(["50%"])] == ["pct"]


class TestDeleteAndFlags:

    def test_delete_counts_only_existing_rows(self, index):
        index.insert(make_record("a", "alpha"))
        index.insert(make_record("b", "beta"))

        assert index.delete_by_ids(["a", "missing"]) == 1
        assert index.delete_by_ids(["a"]) == 0
        assert index.delete_by_ids([]) == 0
        assert index.count() == 1

    def test_mark_embedded(self, index):
        index.insert(make_record("a", "alpha"))

        assert index.mark_embedded("a") is True
        record = index.get("a")
        assert record.has_embedding is True
        assert record.updated_at > record.created_at
        assert index.count_embedded() == 1
        assert index.embedded_ids() == {"a"}

    def test_mark_embedded_missing_record(self, index):
        assert index.mark_embedded("gone") is False

    def test_clear_embedded(self, index):
        for record_id in ("a", "b", "c"):
            index.insert(make_record(record_id, record_id * 3))
            index.mark_embedded(record_id)

        assert index.clear_embedded(["a"]) == 1
        assert index.embedded_ids() == {"b", "c"}
        assert index.clear_embedded() == 2
        assert index.count_embedded() == 0
        assert {record_id for record_id, _ in index.unembedded()} == {"a", "b", "c"}


class TestCounts:

    def test_count_by_category(self, index):
        index.insert(make_record("a", "alpha", category="fact"))
        index.insert(make_record("b", "beta", category="fact"))
        index.insert(make_record("c", "gamma", category="decision"))

        assert index.count() == 3
        assert index.count_by_category() == {"fact": 2, "decision": 1}
        assert index.all_ids() == {"a", "b", "c"}

    def test_eviction_candidates_least_important_then_oldest(self, index):
        index.insert(make_record("new-low", "x1", importance=0.1,
                                 created_at="2026-03-02T00:00:00.000000+00:00"))
        index.insert(make_record("old-low", "x2", importance=0.1,
                                 created_at="2026-03-01T00:00:00.000000+00:00"))
        index.insert(make_record("high", "x3", importance=0.9))

        assert index.eviction_candidates(2) == ["old-low", "new-low"]
        assert index.eviction_candidates(0) == []


def test_unopenable_path_is_persistence_error(tmp_path):
    # A directory where the database file should be
    blocked = tmp_path / "memory.db"
    blocked.mkdir()
    with pytest.raises(PersistenceError):
        StructuredIndex(blocked)


def test_large_id_lists_are_chunked(index):
    for i in range(5):
        index.insert(make_record(f"id-{i}", f"text {i}"))

    ids = [f"id-{i}" for i in range(5)] + [f"missing-{i}" for i in range(1200)]
    assert len(index.get_by_ids(ids)) == 5
    assert index.delete_by_ids(ids) == 5
