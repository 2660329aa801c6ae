"""
Local event cache: a single flat SQL table plus an in-memory test implementation.
"""

from __future__ import annotations

import logging
from typing import Dict, Protocol

from sqlalchemy import Column, Float, Integer, String, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from eventboard.errors import CacheStoreError
from eventboard.events import (
    EVENT_COLUMNS,
    EventId,
    EventRecord,
    as_row_id,
    coerce_coordinate,
    new_created_at,
    sort_events,
)

logger = logging.getLogger(__name__)


class EventCache(Protocol):
    """Interface for the local mirror of submitted events."""

    def add_event(self, payload: dict) -> int:
        ...

    def list_events(self) -> list[EventRecord]:
        ...

    def delete_event(self, event_id: EventId) -> int:
        ...

    def delete_by_created_at(self, created_at: str) -> int:
        ...


def _normalize_row(payload: dict) -> dict:
    # Empty strings are stored as NULL; coordinates keep 0.0.
    row = {}
    for column in EVENT_COLUMNS:
        value = payload.get(column)
        if column in ("lat", "lng"):
            row[column] = coerce_coordinate(value)
        else:
            row[column] = value or None
    if not row["created_at"]:
        row["created_at"] = new_created_at()
    return row


class InMemoryEventCache:
    """Simple in-memory cache for development and tests."""

    def __init__(self):
        self.rows: Dict[int, dict] = {}
        self._next_id = 1

    def add_event(self, payload: dict) -> int:
        row_id = self._next_id
        self._next_id += 1
        self.rows[row_id] = _normalize_row(payload)
        return row_id

    def list_events(self) -> list[EventRecord]:
        return sort_events(
            EventRecord.from_dict(row, event_id=row_id)
            for row_id, row in self.rows.items()
        )

    def delete_event(self, event_id: EventId) -> int:
        row_id = as_row_id(event_id)
        if row_id is None or row_id not in self.rows:
            return 0
        del self.rows[row_id]
        return 1

    def delete_by_created_at(self, created_at: str) -> int:
        doomed = [
            row_id
            for row_id, row in self.rows.items()
            if row.get("created_at") == created_at
        ]
        for row_id in doomed:
            del self.rows[row_id]
        return len(doomed)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.rows.clear()
        self._next_id = 1


class SqlEventCache:
    """
    SQLAlchemy-backed cache. Accepts any SQLAlchemy URL; deployments use a
    SQLite file next to the server process.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlEventCache")
        self.engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        logger.info("Local event cache ready at %s", self.engine.url)

    @staticmethod
    def _to_record(row: "EventRow") -> EventRecord:
        values = {column: getattr(row, column) for column in EVENT_COLUMNS}
        return EventRecord.from_dict(values, event_id=row.id)

    def add_event(self, payload: dict) -> int:
        try:
            with self.Session() as session:
                row = EventRow(**_normalize_row(payload))
                session.add(row)
                session.commit()
                return row.id
        except SQLAlchemyError as exc:
            raise CacheStoreError(
                str(exc), message="Failed to add event to database"
            ) from exc

    def list_events(self) -> list[EventRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(EventRow).order_by(EventRow.created_at.desc())
                ).scalars()
                return sort_events(self._to_record(row) for row in rows)
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc), message="Failed to fetch events") from exc

    def delete_event(self, event_id: EventId) -> int:
        row_id = as_row_id(event_id)
        if row_id is None:
            return 0
        return self._delete(EventRow.id == row_id)

    def delete_by_created_at(self, created_at: str) -> int:
        return self._delete(EventRow.created_at == created_at)

    def _delete(self, condition) -> int:
        try:
            with self.Session() as session:
                result = session.execute(delete(EventRow).where(condition))
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise CacheStoreError(str(exc), message="Failed to delete event") from exc


Base = declarative_base()


class EventRow(Base):
    __tablename__ = "events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=True)
    type = Column(String, nullable=True)
    district = Column(String, nullable=True)
    upazila = Column(String, nullable=True)
    village = Column(String, nullable=True)
    address = Column(String, nullable=True)
    date_range = Column(String, nullable=True)
    start_time = Column(String, nullable=True)
    iftar_time = Column(String, nullable=True)
    contact = Column(String, nullable=True)
    description = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    link_url = Column(String, nullable=True)
    event_date = Column(String, nullable=True)
    event_day = Column(String, nullable=True)
    created_at = Column(String, nullable=True)
