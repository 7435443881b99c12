"""Database module for the local document store."""

from .models import Base, Document
from .sqlite import Database, get_db, reset_db
from .store import DocumentStore, Filter, WriteOp

__all__ = [
    "Base",
    "Document",
    "Database",
    "get_db",
    "reset_db",
    "DocumentStore",
    "Filter",
    "WriteOp",
]
