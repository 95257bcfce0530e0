"""Scoped string-keyed stores backing the offline cache.

``MemoryStore`` lives as long as the process; ``SqlKeyValueStore`` keeps the
entries in an embedded database so pending sales survive a restart. Store
failures surface as ``StorageError`` so the cache can degrade on them.
"""
import logging
from typing import Dict, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import select

from lubricentro.core.errors import StorageError
from lubricentro.core.time_utils import utcnow

logger = logging.getLogger(__name__)

LocalBase = declarative_base()


class CacheEntry(LocalBase):
    __tablename__ = "local_kv"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class KeyValueStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class SqlKeyValueStore(KeyValueStore):
    def __init__(self, engine: Engine):
        self.engine = engine
        LocalBase.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> "SqlKeyValueStore":
        kwargs = {}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory databases live and die with their connection.
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        return cls(create_engine(url, future=True, **kwargs))

    def get(self, key: str) -> Optional[str]:
        try:
            with Session(self.engine) as session:
                return session.execute(
                    select(CacheEntry.value).where(CacheEntry.key == key)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(f"could not read {key}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            with Session(self.engine) as session, session.begin():
                entry = session.get(CacheEntry, key)
                if entry is None:
                    session.add(CacheEntry(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as exc:
            raise StorageError(f"could not write {key}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            with Session(self.engine) as session, session.begin():
                session.execute(delete(CacheEntry).where(CacheEntry.key == key))
        except SQLAlchemyError as exc:
            raise StorageError(f"could not remove {key}: {exc}") from exc

    def clear(self) -> None:
        try:
            with Session(self.engine) as session, session.begin():
                session.execute(delete(CacheEntry))
        except SQLAlchemyError as exc:
            raise StorageError(f"could not clear local store: {exc}") from exc
        logger.info("Local store cleared")
