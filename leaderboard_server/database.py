"""
Database engine and session factory for the participant store (SQLite).
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leaderboard_server.config import DATABASE_URL
from leaderboard_server.models import Base


def make_engine(url: str) -> Engine:
    # In-memory SQLite needs StaticPool so every connection sees the same DB;
    # check_same_thread=False because handlers run on the threadpool
    if url.startswith("sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if "sqlite" in url else {}
    return create_engine(url, connect_args=connect_args)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=bind or engine)


def reset_db(bind: Engine | None = None) -> None:
    """Drop and recreate all tables. Used by tests."""
    target = bind or engine
    Base.metadata.drop_all(bind=target)
    Base.metadata.create_all(bind=target)
