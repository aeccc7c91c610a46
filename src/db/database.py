from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.models import Base


class Database:
    """Engine and session factory for one connection URL."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = _create_engine(url, echo)
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_db(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables initialized")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


def _create_engine(url: str, echo: bool) -> Engine:
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            return create_engine(
                url, echo=echo, connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        db_path = url.split("///", 1)[-1]
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, echo=echo)
    return create_engine(url, echo=echo, pool_pre_ping=True)
