"""Progress store: SQLAlchemy engine, models and repository."""

from coursegate.db.database import get_engine, init_db, make_session_factory, session_scope
from coursegate.db.store import ProgressStore

__all__ = [
    "ProgressStore",
    "get_engine",
    "init_db",
    "make_session_factory",
    "session_scope",
]
