"""
Database abstraction for the creations table and an in-memory test implementation.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from createkit.errors import StorageError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreationKind(str, Enum):
    ARTICLE = "article"
    BLOG_TITLE = "blog-title"
    IMAGE = "image"
    RESUME_REVIEW = "resume-review"


class DbClient(Protocol):
    """Interface for database access."""

    def create_creation(
        self,
        user_id: str,
        prompt: str,
        content: str,
        kind: CreationKind,
        publish: bool = False,
    ) -> "CreationRecord":
        ...

    def get_creation(self, creation_id: int) -> Optional["CreationRecord"]:
        ...

    def list_user_creations(self, user_id: str) -> list["CreationRecord"]:
        ...

    def list_published_creations(self) -> list["CreationRecord"]:
        ...

    def update_likes(self, creation_id: int, likes: list[str]) -> None:
        ...

    def update_publish(self, creation_id: int, publish: bool) -> None:
        ...


@dataclass
class CreationRecord:
    id: int
    user_id: str
    prompt: str
    content: str
    type: CreationKind
    publish: bool = False
    likes: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "prompt": self.prompt,
            "content": self.content,
            "type": self.type.value,
            "publish": self.publish,
            "likes": list(self.likes),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.creations: Dict[int, CreationRecord] = {}
        self._ids = itertools.count(1)

    def create_creation(
        self,
        user_id: str,
        prompt: str,
        content: str,
        kind: CreationKind,
        publish: bool = False,
    ) -> CreationRecord:
        record = CreationRecord(
            id=next(self._ids),
            user_id=user_id,
            prompt=prompt,
            content=content,
            type=kind,
            publish=publish,
        )
        self.creations[record.id] = record
        return record

    def get_creation(self, creation_id: int) -> Optional[CreationRecord]:
        return self.creations.get(creation_id)

    def list_user_creations(self, user_id: str) -> list[CreationRecord]:
        rows = [c for c in self.creations.values() if c.user_id == user_id]
        return sorted(rows, key=lambda c: (c.created_at, c.id), reverse=True)

    def list_published_creations(self) -> list[CreationRecord]:
        rows = [c for c in self.creations.values() if c.publish]
        return sorted(rows, key=lambda c: (c.created_at, c.id), reverse=True)

    def update_likes(self, creation_id: int, likes: list[str]) -> None:
        creation = self.creations.get(creation_id)
        if creation:
            creation.likes = list(likes)
            creation.updated_at = _utcnow()

    def update_publish(self, creation_id: int, publish: bool) -> None:
        creation = self.creations.get(creation_id)
        if creation:
            creation.publish = publish
            creation.updated_at = _utcnow()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.creations.clear()
        self._ids = itertools.count(1)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Failures from the driver are re-raised as ``StorageError``.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "CreationRow") -> CreationRecord:
        return CreationRecord(
            id=row.id,
            user_id=row.user_id,
            prompt=row.prompt,
            content=row.content,
            type=CreationKind(row.type),
            publish=bool(row.publish),
            likes=list(row.likes or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_creation(
        self,
        user_id: str,
        prompt: str,
        content: str,
        kind: CreationKind,
        publish: bool = False,
    ) -> CreationRecord:
        now = _utcnow()
        try:
            with self.Session() as session:
                row = CreationRow(
                    user_id=user_id,
                    prompt=prompt,
                    content=content,
                    type=kind.value,
                    publish=publish,
                    likes=[],
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to save creation.") from exc

    def get_creation(self, creation_id: int) -> Optional[CreationRecord]:
        try:
            with self.Session() as session:
                row = session.get(CreationRow, creation_id)
                if not row:
                    return None
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to load creation.") from exc

    def list_user_creations(self, user_id: str) -> list[CreationRecord]:
        stmt = (
            select(CreationRow)
            .where(CreationRow.user_id == user_id)
            .order_by(CreationRow.created_at.desc(), CreationRow.id.desc())
        )
        return self._list(stmt)

    def list_published_creations(self) -> list[CreationRecord]:
        stmt = (
            select(CreationRow)
            .where(CreationRow.publish.is_(True))
            .order_by(CreationRow.created_at.desc(), CreationRow.id.desc())
        )
        return self._list(stmt)

    def _list(self, stmt) -> list[CreationRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError("Failed to load creations.") from exc

    def update_likes(self, creation_id: int, likes: list[str]) -> None:
        try:
            with self.Session() as session:
                row = session.get(CreationRow, creation_id)
                if not row:
                    return
                row.likes = list(likes)
                row.updated_at = _utcnow()
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to update likes.") from exc

    def update_publish(self, creation_id: int, publish: bool) -> None:
        try:
            with self.Session() as session:
                row = session.get(CreationRow, creation_id)
                if not row:
                    return
                row.publish = publish
                row.updated_at = _utcnow()
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to update publish state.") from exc


Base = declarative_base()


class CreationRow(Base):
    __tablename__ = "creations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String, nullable=False)
    publish = Column(Boolean, nullable=False, default=False, index=True)
    likes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
