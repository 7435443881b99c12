"""SQLite backing for the document store.

One file (or one shared in-memory connection) holds the documents table.
Sessions commit on success and roll back on any exception, which is what
DocumentStore.run_transaction relies on for all-or-nothing writes.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

DEFAULT_DB_PATH = Path.home() / ".stakefit" / "stakefit.db"


class Database:
    """Engine and session factory for the documents table."""

    def __init__(self, db_path: Optional[str] = None):
        """Open the challenge database.

        Args:
            db_path: SQLite file, or ":memory:" for a throwaway store.
                     Falls back to STAKEFIT_DB_PATH, then ~/.stakefit/stakefit.db.
        """
        db_path = db_path or os.environ.get("STAKEFIT_DB_PATH") or str(DEFAULT_DB_PATH)
        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        engine_options = {"echo": False, "connect_args": {"check_same_thread": False}}
        if self._is_memory:
            # Every session must see the same in-memory documents
            engine_options["poolclass"] = StaticPool
            url = "sqlite:///:memory:"
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.db_path}"

        self.engine = create_engine(url, **engine_options)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def create_tables(self) -> None:
        """Create the documents table if it is missing."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session that commits when the block exits cleanly."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Process-wide database, created with its tables on first use."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Forget the process-wide database so the next get_db opens a new one."""
    global _db
    _db = None
