"""Document store over SQLite.

Provides get/set/create/update/delete, simple queries (comparisons,
array-contains, order-by, limit), multi-document transactions and
batched writes. Every operation accepts an optional open session so that
callers can group several operations into one transaction.

Comparisons, ordering and limits run in SQL against the JSON column.
Array-contains and null comparisons are evaluated on loaded documents.
"""

import copy
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, TypeVar

from sqlalchemy import ColumnElement, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    ConcurrentModificationError,
    ConflictError,
    DocumentNotFoundError,
    StoreError,
)
from .models import Document, generate_uuid, utc_now_iso
from .sqlite import Database

T = TypeVar("T")

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Filter:
    """A single query condition on a top-level document field."""

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op != "array_contains" and self.op not in _COMPARATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def clause(self) -> Optional[ColumnElement]:
        """SQL condition for this filter, or None if it must be checked in Python."""
        if self.op == "array_contains":
            return None
        element = Document.data[self.field]
        if isinstance(self.value, bool):
            target = element.as_boolean()
        elif isinstance(self.value, (int, float)):
            target = element.as_float()
        elif isinstance(self.value, str):
            target = element.as_string()
        else:
            return None
        return _COMPARATORS[self.op](target, self.value)

    def matches(self, doc: dict) -> bool:
        if self.field not in doc:
            return False
        actual = doc[self.field]

        if self.op == "array_contains":
            return isinstance(actual, list) and self.value in actual

        try:
            return _COMPARATORS[self.op](actual, self.value)
        except TypeError:
            return False


@dataclass
class WriteOp:
    """One write in a batch: set, update or delete."""

    kind: str  # set, update, delete
    collection: str
    doc_id: str
    data: dict = field(default_factory=dict)

    @classmethod
    def set(cls, collection: str, doc_id: str, data: dict) -> "WriteOp":
        return cls("set", collection, doc_id, data)

    @classmethod
    def update(cls, collection: str, doc_id: str, data: dict) -> "WriteOp":
        return cls("update", collection, doc_id, data)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "WriteOp":
        return cls("delete", collection, doc_id)


class DocumentStore:
    """JSON document persistence with transactions."""

    def __init__(self, db: Database):
        """Initialize the store.

        Args:
            db: Database instance holding the documents table
        """
        self.db = db

    def _execute(self, operation: Callable[[Session], T], session: Optional[Session] = None) -> T:
        """Run an operation in the given session or a fresh one.

        Database failures are translated into StoreError; a write that lost
        an optimistic-lock race becomes ConcurrentModificationError.
        """
        try:
            if session is not None:
                return operation(session)
            with self.db.get_session() as s:
                return operation(s)
        except StaleDataError as e:
            raise ConcurrentModificationError(
                f"Document changed by another writer: {e}"
            ) from e
        except IntegrityError as e:
            raise ConflictError(f"Document already exists: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Document store failure: {e}") from e

    @staticmethod
    def _to_dict(doc: Document) -> dict:
        data = copy.deepcopy(doc.data)
        data["id"] = doc.doc_id
        return data

    @staticmethod
    def _clean(data: dict) -> dict:
        cleaned = copy.deepcopy(data)
        cleaned.pop("id", None)
        return cleaned

    # ========================================================================
    # Single Document Operations
    # ========================================================================

    def get(self, collection: str, doc_id: str, session: Optional[Session] = None) -> Optional[dict]:
        """Get a document by id, or None if it does not exist."""

        def _get(s: Session) -> Optional[dict]:
            doc = s.get(Document, (collection, doc_id))
            return self._to_dict(doc) if doc else None

        return self._execute(_get, session)

    def create(
        self,
        collection: str,
        data: dict,
        doc_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> str:
        """Insert a new document and return its id."""
        new_id = doc_id or generate_uuid()

        def _create(s: Session) -> str:
            s.add(Document(collection=collection, doc_id=new_id, data=self._clean(data)))
            s.flush()
            return new_id

        return self._execute(_create, session)

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        session: Optional[Session] = None,
    ) -> None:
        """Create or overwrite a document."""

        def _set(s: Session) -> None:
            doc = s.get(Document, (collection, doc_id))
            if doc:
                doc.data = self._clean(data)
                doc.updated_at = utc_now_iso()
            else:
                s.add(Document(collection=collection, doc_id=doc_id, data=self._clean(data)))
            s.flush()

        self._execute(_set, session)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        session: Optional[Session] = None,
    ) -> dict:
        """Merge fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

        def _update(s: Session) -> dict:
            doc = s.get(Document, (collection, doc_id))
            if not doc:
                raise DocumentNotFoundError(collection, doc_id)
            # Assign a new dict so the JSON column registers the change
            doc.data = {**copy.deepcopy(doc.data), **self._clean(fields)}
            doc.updated_at = utc_now_iso()
            s.flush()
            return self._to_dict(doc)

        return self._execute(_update, session)

    def delete(self, collection: str, doc_id: str, session: Optional[Session] = None) -> bool:
        """Delete a document. Returns True if it existed."""

        def _delete(s: Session) -> bool:
            doc = s.get(Document, (collection, doc_id))
            if not doc:
                return False
            s.delete(doc)
            s.flush()
            return True

        return self._execute(_delete, session)

    # ========================================================================
    # Queries
    # ========================================================================

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> list[dict]:
        """Query a collection.

        Args:
            collection: Collection name
            filters: Conditions that must all hold
            order_by: Field to sort on (documents missing it sort last)
            descending: Sort direction
            limit: Maximum number of documents to return

        Returns:
            Matching documents
        """
        sql_conditions = []
        post_filters: list[Filter] = []
        for f in filters:
            clause = f.clause()
            if clause is None:
                post_filters.append(f)
            else:
                sql_conditions.append(clause)

        stmt = select(Document).where(Document.collection == collection, *sql_conditions)
        if order_by:
            key = Document.data[order_by].as_string()
            stmt = stmt.order_by(key.is_(None), key.desc() if descending else key.asc())
        stmt = stmt.order_by(Document.created_at)
        # Python-side filters must see every row before the limit applies
        if limit is not None and not post_filters:
            stmt = stmt.limit(limit)

        def _query(s: Session) -> list[dict]:
            docs = [self._to_dict(d) for d in s.execute(stmt).scalars().all()]
            return [d for d in docs if all(f.matches(d) for f in post_filters)]

        results = self._execute(_query, session)
        if limit is not None and post_filters:
            results = results[:limit]
        return results

    # ========================================================================
    # Transactions
    # ========================================================================

    def run_transaction(self, fn: Callable[[Session], T]) -> T:
        """Run fn inside one transaction.

        fn receives the session to pass to other store calls. Everything is
        committed when fn returns and rolled back if it raises.
        """
        return self._execute(fn)

    def batch_write(self, ops: Iterable[WriteOp]) -> int:
        """Apply a list of writes all-or-nothing. Returns the number applied."""
        writes = list(ops)

        def _batch(s: Session) -> int:
            for op in writes:
                if op.kind == "set":
                    self.set(op.collection, op.doc_id, op.data, session=s)
                elif op.kind == "update":
                    self.update(op.collection, op.doc_id, op.data, session=s)
                elif op.kind == "delete":
                    self.delete(op.collection, op.doc_id, session=s)
                else:
                    raise ValueError(f"Unknown write kind: {op.kind}")
            return len(writes)

        if not writes:
            return 0
        return self.run_transaction(_batch)
