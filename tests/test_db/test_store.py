"""Tests for the SQLite document store."""

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from stakefit.accountability.db import Database, Document, DocumentStore, Filter, WriteOp
from stakefit.accountability.errors import (
    ConcurrentModificationError,
    ConflictError,
    DocumentNotFoundError,
)


class TestDocumentCRUD:
    """Tests for single document operations."""

    def test_create_assigns_id(self, store: DocumentStore):
        """Test that create returns a generated id."""
        doc_id = store.create("things", {"name": "a"})

        assert doc_id
        assert store.get("things", doc_id) == {"name": "a", "id": doc_id}

    def test_create_with_explicit_id(self, store: DocumentStore):
        """Test creating with a caller-chosen id."""
        store.create("things", {"name": "a"}, doc_id="fixed")

        assert store.get("things", "fixed")["name"] == "a"

    def test_create_duplicate_id_conflicts(self, store: DocumentStore):
        """Test that inserting an existing id raises ConflictError."""
        store.create("things", {"name": "a"}, doc_id="fixed")

        with pytest.raises(ConflictError):
            store.create("things", {"name": "b"}, doc_id="fixed")

    def test_get_missing_returns_none(self, store: DocumentStore):
        """Test that a missing document is not an error."""
        assert store.get("things", "nope") is None

    def test_collections_are_separate(self, store: DocumentStore):
        """Test that the same id can exist in two collections."""
        store.create("a", {"v": 1}, doc_id="x")
        store.create("b", {"v": 2}, doc_id="x")

        assert store.get("a", "x")["v"] == 1
        assert store.get("b", "x")["v"] == 2

    def test_set_creates_and_overwrites(self, store: DocumentStore):
        """Test that set upserts and replaces all fields."""
        store.set("things", "t1", {"name": "a", "extra": True})
        store.set("things", "t1", {"name": "b"})

        assert store.get("things", "t1") == {"name": "b", "id": "t1"}

    def test_update_merges_fields(self, store: DocumentStore):
        """Test that update keeps untouched fields."""
        store.create("things", {"name": "a", "count": 1}, doc_id="t1")

        result = store.update("things", "t1", {"count": 2})

        assert result == {"name": "a", "count": 2, "id": "t1"}
        assert store.get("things", "t1")["count"] == 2

    def test_update_missing_raises(self, store: DocumentStore):
        """Test that updating a missing document raises."""
        with pytest.raises(DocumentNotFoundError) as exc_info:
            store.update("things", "nope", {"count": 2})

        assert exc_info.value.collection == "things"
        assert exc_info.value.doc_id == "nope"

    def test_delete(self, store: DocumentStore):
        """Test delete reports whether the document existed."""
        store.create("things", {"name": "a"}, doc_id="t1")

        assert store.delete("things", "t1") is True
        assert store.delete("things", "t1") is False
        assert store.get("things", "t1") is None

    def test_returned_documents_are_copies(self, store: DocumentStore):
        """Test that mutating a returned dict does not change the store."""
        store.create("things", {"tags": ["a"]}, doc_id="t1")

        doc = store.get("things", "t1")
        doc["tags"].append("b")

        assert store.get("things", "t1")["tags"] == ["a"]


class TestQueries:
    """Tests for filtered, ordered queries."""

    @pytest.fixture
    def populated(self, store: DocumentStore) -> DocumentStore:
        store.create("people", {"name": "ann", "age": 30, "teams": ["red"]}, doc_id="1")
        store.create("people", {"name": "ben", "age": 25, "teams": ["red", "blue"]}, doc_id="2")
        store.create("people", {"name": "cat", "age": 35, "teams": []}, doc_id="3")
        store.create("people", {"name": "dan"}, doc_id="4")
        return store

    def test_equality_filter(self, populated: DocumentStore):
        """Test filtering on equality."""
        docs = populated.query("people", [Filter("name", "==", "ben")])

        assert [d["id"] for d in docs] == ["2"]

    def test_comparison_filter_skips_missing_fields(self, populated: DocumentStore):
        """Test that documents without the field never match."""
        docs = populated.query("people", [Filter("age", ">=", 30)])

        assert sorted(d["name"] for d in docs) == ["ann", "cat"]

    def test_array_contains(self, populated: DocumentStore):
        """Test array-contains matching."""
        docs = populated.query("people", [Filter("teams", "array_contains", "red")])

        assert sorted(d["name"] for d in docs) == ["ann", "ben"]

    def test_combined_filters(self, populated: DocumentStore):
        """Test that all filters must hold."""
        docs = populated.query(
            "people",
            [Filter("teams", "array_contains", "red"), Filter("age", "<", 30)],
        )

        assert [d["name"] for d in docs] == ["ben"]

    def test_order_and_limit(self, populated: DocumentStore):
        """Test ordering descending with missing values last, then limiting."""
        docs = populated.query("people", order_by="age", descending=True)
        assert [d["name"] for d in docs] == ["cat", "ann", "ben", "dan"]

        docs = populated.query("people", order_by="age", limit=2)
        assert [d["name"] for d in docs] == ["ben", "ann"]

    def test_filters_order_and_limit_run_in_sql(self, db: Database, populated: DocumentStore):
        """Test that comparisons, ordering and the limit are part of the SELECT."""
        statements: list[str] = []

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement.upper())

        event.listen(db.engine, "before_cursor_execute", capture)
        try:
            docs = populated.query(
                "people", [Filter("age", ">", 20)], order_by="age", limit=1
            )
        finally:
            event.remove(db.engine, "before_cursor_execute", capture)

        assert [d["name"] for d in docs] == ["ben"]
        selects = [s for s in statements if s.lstrip().startswith("SELECT")]
        assert len(selects) == 1
        assert "JSON_EXTRACT" in selects[0]
        assert "LIMIT" in selects[0]

    def test_limit_applies_after_array_contains(self, populated: DocumentStore):
        """Test that the limit counts only documents passing every filter."""
        docs = populated.query("people", [Filter("teams", "array_contains", "blue")], limit=1)

        assert [d["name"] for d in docs] == ["ben"]

    def test_string_comparison(self, store: DocumentStore):
        """Test ordering comparisons on ISO timestamps stored as text."""
        store.create("events", {"at": "2025-01-10T00:00:00.000000+00:00"}, doc_id="old")
        store.create("events", {"at": "2025-01-20T00:00:00.000000+00:00"}, doc_id="new")

        docs = store.query("events", [Filter("at", ">", "2025-01-15T00:00:00.000000+00:00")])

        assert [d["id"] for d in docs] == ["new"]

    def test_boolean_filter(self, store: DocumentStore):
        store.create("flags", {"on": True}, doc_id="a")
        store.create("flags", {"on": False}, doc_id="b")

        assert [d["id"] for d in store.query("flags", [Filter("on", "==", True)])] == ["a"]

    def test_unknown_operator_rejected(self):
        """Test that Filter validates its operator."""
        with pytest.raises(ValueError):
            Filter("age", "~=", 1)


class TestTransactions:
    """Tests for multi-document transactions and batches."""

    def test_transaction_commits(self, store: DocumentStore):
        """Test that writes in a transaction are committed together."""

        def _work(s: Session) -> str:
            store.create("a", {"v": 1}, doc_id="x", session=s)
            store.create("b", {"v": 2}, doc_id="y", session=s)
            return "done"

        assert store.run_transaction(_work) == "done"
        assert store.get("a", "x") and store.get("b", "y")

    def test_transaction_rolls_back_on_error(self, store: DocumentStore):
        """Test that a failing transaction leaves nothing behind."""

        def _work(s: Session) -> None:
            store.create("a", {"v": 1}, doc_id="x", session=s)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.run_transaction(_work)

        assert store.get("a", "x") is None

    def test_batch_write_applies_all(self, store: DocumentStore):
        """Test a batch of set, update and delete."""
        store.create("things", {"n": 1}, doc_id="keep")
        store.create("things", {"n": 1}, doc_id="drop")

        count = store.batch_write([
            WriteOp.set("things", "new", {"n": 0}),
            WriteOp.update("things", "keep", {"n": 2}),
            WriteOp.delete("things", "drop"),
        ])

        assert count == 3
        assert store.get("things", "new")["n"] == 0
        assert store.get("things", "keep")["n"] == 2
        assert store.get("things", "drop") is None

    def test_batch_write_is_all_or_nothing(self, store: DocumentStore):
        """Test that one failing write undoes the batch."""
        store.create("things", {"n": 1}, doc_id="keep")

        with pytest.raises(DocumentNotFoundError):
            store.batch_write([
                WriteOp.update("things", "keep", {"n": 2}),
                WriteOp.update("things", "missing", {"n": 2}),
            ])

        assert store.get("things", "keep")["n"] == 1

    def test_empty_batch(self, store: DocumentStore):
        assert store.batch_write([]) == 0


class TestOptimisticLocking:
    """Tests for the document version column."""

    def test_version_increments(self, db: Database, store: DocumentStore):
        """Test that each write bumps the version."""
        store.create("things", {"n": 1}, doc_id="t1")
        store.update("things", "t1", {"n": 2})

        with db.get_session() as s:
            assert s.get(Document, ("things", "t1")).version == 2

    def test_stale_write_raises(self, db: Database, store: DocumentStore):
        """Test that a write based on an old version is rejected."""
        store.create("things", {"n": 1}, doc_id="t1")

        def _stale(s: Session) -> None:
            doc = s.get(Document, ("things", "t1"))
            # Another writer commits in between
            store.update("things", "t1", {"n": 5})
            doc.data = {"n": 2}
            s.flush()

        with pytest.raises(ConcurrentModificationError):
            store.run_transaction(_stale)

        assert store.get("things", "t1")["n"] == 5


class TestDatabase:
    """Tests for the SQLite backing."""

    def test_memory_database_shared_across_sessions(self):
        memory = Database(":memory:")
        memory.create_tables()
        store = DocumentStore(memory)

        store.create("things", {"n": 1}, doc_id="t1")

        assert store.get("things", "t1")["n"] == 1

    def test_creates_parent_directory(self, tmp_path):
        Database(str(tmp_path / "nested" / "dir" / "store.db"))

        assert (tmp_path / "nested" / "dir").is_dir()

    def test_session_rolls_back_on_error(self, db: Database, store: DocumentStore):
        with pytest.raises(RuntimeError):
            with db.get_session() as s:
                s.add(Document(collection="things", doc_id="t1", data={"n": 1}))
                s.flush()
                raise RuntimeError("boom")

        assert store.get("things", "t1") is None
