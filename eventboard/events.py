"""
Event record, listing filters and ordering rules shared by every backend.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

EventId = Union[int, str]

EVENT_TYPES = ("public_iftar", "religious_gathering")
DEFAULT_EVENT_TYPE = "public_iftar"

# Columns stored by every backend, in table order (``id`` excluded).
EVENT_COLUMNS = (
    "name",
    "type",
    "district",
    "upazila",
    "village",
    "address",
    "date_range",
    "start_time",
    "iftar_time",
    "contact",
    "description",
    "image_url",
    "lat",
    "lng",
    "link_url",
    "event_date",
    "event_day",
    "created_at",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# PostgREST trims trailing zeros from fractional seconds.
_FRACTION = re.compile(r"\.(\d+)")


@dataclass
class EventRecord:
    """One copy of an event as held by a single backend."""

    id: Optional[EventId] = None
    name: Optional[str] = None
    type: Optional[str] = None
    district: Optional[str] = None
    upazila: Optional[str] = None
    village: Optional[str] = None
    address: Optional[str] = None
    date_range: Optional[str] = None
    start_time: Optional[str] = None
    iftar_time: Optional[str] = None
    contact: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    link_url: Optional[str] = None
    event_date: Optional[str] = None
    event_day: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, event_id: EventId | None = None) -> "EventRecord":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if event_id is not None:
            values["id"] = event_id
        values["lat"] = coerce_coordinate(values.get("lat"))
        values["lng"] = coerce_coordinate(values.get("lng"))
        return cls(**values)

    def as_dict(self) -> dict:
        return asdict(self)

    def payload(self) -> dict:
        """Column values without the store-assigned identifier."""
        return {column: getattr(self, column) for column in EVENT_COLUMNS}


@dataclass(frozen=True)
class EventFilters:
    """
    Listing filters. ``type`` and ``district`` match exactly; ``upazila`` and
    ``village`` match as case-insensitive substrings. Empty values are ignored.
    """

    type: Optional[str] = None
    district: Optional[str] = None
    upazila: Optional[str] = None
    village: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.type or self.district or self.upazila or self.village)

    def matches(self, event: EventRecord) -> bool:
        if self.district and event.district != self.district:
            return False
        if self.type and event.type != self.type:
            return False
        if self.upazila and not _contains(event.upazila, self.upazila):
            return False
        if self.village and not _contains(event.village, self.village):
            return False
        return True


def _contains(value: Optional[str], needle: str) -> bool:
    if not value:
        return False
    return needle.casefold() in value.casefold()


def apply_filters(
    events: Iterable[EventRecord], filters: EventFilters
) -> list[EventRecord]:
    return [event for event in events if filters.matches(event)]


def parse_created_at(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; ``None`` when missing or unparseable."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(
        lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1
    )
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_events(events: Iterable[EventRecord]) -> list[EventRecord]:
    """Newest first; events without a usable ``created_at`` go last."""
    return sorted(
        events,
        key=lambda event: parse_created_at(event.created_at) or _EPOCH,
        reverse=True,
    )


def new_created_at(now: datetime | None = None) -> str:
    """UTC timestamp in the same shape browsers emit (``...T12:00:00.000Z``)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def coerce_coordinate(value: Any) -> Optional[float]:
    """Invalid numeric input becomes an absent coordinate instead of an error."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def is_document_id(event_id: EventId) -> bool:
    """Backup store keys are opaque non-numeric strings."""
    return isinstance(event_id, str) and bool(event_id) and not event_id.isdigit()


def as_row_id(event_id: EventId) -> Optional[int]:
    """Integer row id for the SQL stores, or ``None`` if the id is not integer-like."""
    if isinstance(event_id, bool):
        return None
    if isinstance(event_id, int):
        return event_id
    if isinstance(event_id, str) and event_id.strip().isdigit():
        return int(event_id.strip())
    return None
