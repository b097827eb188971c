"""Database module - async engine, session factory and record store."""

from mixer.db.engine import close_db, create_engine, create_session_factory, init_db
from mixer.db.store import MixerStore

__all__ = [
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "MixerStore",
]
