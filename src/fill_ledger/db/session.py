# src/fill_ledger/db/session.py
"""Database engine, session factory and table creation."""

import os
from pathlib import Path
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

DEFAULT_DATABASE_URL = "sqlite:///./fill_ledger.db"

# DATABASE_URL from the environment, local SQLite file otherwise
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def make_engine(url: str) -> Engine:
    """Engine for `url`; creates the parent directory of a SQLite file."""
    if url.startswith("sqlite:///"):
        db_path = url[len("sqlite:///"):]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(url, pool_pre_ping=True, echo=False)


engine = make_engine(DATABASE_URL)


def init_db(bind: Engine = None):
    """Create all tables if they don't exist."""
    # table classes register on SQLModel.metadata at import
    from fill_ledger.db import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Session:
    """Get a new database session."""
    return Session(engine)
