"""
Primary event store: Supabase (PostgREST over HTTP) and an in-memory test double.

The primary store is the source of truth for listings. Filters are pushed down
to the server as PostgREST operators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

from eventboard.errors import PrimaryStoreError
from eventboard.events import (
    EVENT_COLUMNS,
    EventFilters,
    EventId,
    EventRecord,
    apply_filters,
    as_row_id,
    sort_events,
)

logger = logging.getLogger(__name__)


class PrimaryStore(Protocol):
    """Operations the reconciliation layer needs from the primary store."""

    def insert_event(self, payload: dict) -> EventId:
        ...

    def query_events(self, filters: EventFilters) -> list[EventRecord]:
        ...

    def get_event(self, event_id: EventId) -> Optional[EventRecord]:
        ...

    def delete_event(self, event_id: EventId) -> None:
        ...


def filter_params(filters: EventFilters) -> dict:
    """Translate listing filters into PostgREST query parameters."""
    params = {"select": "*", "order": "created_at.desc.nullslast"}
    if filters.district:
        params["district"] = f"eq.{filters.district}"
    if filters.type:
        params["type"] = f"eq.{filters.type}"
    if filters.upazila:
        params["upazila"] = f"ilike.*{filters.upazila}*"
    if filters.village:
        params["village"] = f"ilike.*{filters.village}*"
    return params


@dataclass
class InMemoryPrimaryStore:
    """Test double. Flip ``available`` to simulate an outage."""

    available: bool = True
    rows: dict = field(default_factory=dict)
    next_id: int = 1

    def _check(self) -> None:
        if not self.available:
            raise PrimaryStoreError("primary store unavailable")

    def insert_event(self, payload: dict) -> EventId:
        self._check()
        row_id = self.next_id
        self.next_id += 1
        self.rows[row_id] = {column: payload.get(column) for column in EVENT_COLUMNS}
        return row_id

    def query_events(self, filters: EventFilters) -> list[EventRecord]:
        self._check()
        records = [
            EventRecord.from_dict(row, event_id=row_id)
            for row_id, row in self.rows.items()
        ]
        return sort_events(apply_filters(records, filters))

    def get_event(self, event_id: EventId) -> Optional[EventRecord]:
        self._check()
        row_id = as_row_id(event_id)
        row = self.rows.get(row_id)
        return EventRecord.from_dict(row, event_id=row_id) if row else None

    def delete_event(self, event_id: EventId) -> None:
        self._check()
        row_id = as_row_id(event_id)
        if row_id is None:
            raise PrimaryStoreError(f"invalid input syntax for type bigint: {event_id!r}")
        self.rows.pop(row_id, None)

    def reset(self) -> None:
        self.rows.clear()
        self.next_id = 1


@dataclass
class SupabasePrimaryStore:
    """
    Supabase table reached through its REST endpoint with the anonymous key.
    """

    url: str
    anon_key: str
    table: str = "events"
    timeout: float = 10.0

    def __post_init__(self):
        self._session = requests.Session()
        self._session.headers.update(
            {
                "apikey": self.anon_key,
                "Authorization": f"Bearer {self.anon_key}",
                "Content-Type": "application/json",
            }
        )

    @property
    def endpoint(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1/{self.table}"

    def _request(self, method: str, **kwargs) -> requests.Response:
        try:
            response = self._session.request(
                method, self.endpoint, timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise PrimaryStoreError(f"{method} {self.table} failed: {exc}") from exc
        return response

    def insert_event(self, payload: dict) -> EventId:
        response = self._request(
            "POST",
            json=[payload],
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if not rows:
            raise PrimaryStoreError("insert returned no rows")
        return rows[0].get("id")

    def query_events(self, filters: EventFilters) -> list[EventRecord]:
        response = self._request("GET", params=filter_params(filters))
        return [EventRecord.from_dict(row) for row in response.json()]

    def get_event(self, event_id: EventId) -> Optional[EventRecord]:
        response = self._request(
            "GET", params={"select": "*", "id": f"eq.{event_id}", "limit": 1}
        )
        rows = response.json()
        return EventRecord.from_dict(rows[0]) if rows else None

    def delete_event(self, event_id: EventId) -> None:
        self._request("DELETE", params={"id": f"eq.{event_id}"})
        logger.info("Deleted event %s from %s", event_id, self.table)
