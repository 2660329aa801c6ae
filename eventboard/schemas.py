"""
Pydantic schemas for the event board API.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventboard.events import DEFAULT_EVENT_TYPE, coerce_coordinate

EventType = Literal["public_iftar", "religious_gathering"]


class EventPayload(BaseModel):
    """Event fields as submitted by the form."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    type: EventType = DEFAULT_EVENT_TYPE
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

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def coerce_coordinates(cls, value):
        return coerce_coordinate(value)


class SubmitEventPayload(EventPayload):
    name: str = Field(..., min_length=1)


class CachedEventPayload(EventPayload):
    """Local cache rows keep whatever category the client sent."""

    type: Optional[str] = None


class EventOut(BaseModel):
    id: Optional[Union[int, str]] = None
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


class CreateEventResponse(BaseModel):
    success: bool
    id: Optional[Union[int, str]] = None


class DeleteEventRequest(BaseModel):
    id: Union[int, str]


class SuccessResponse(BaseModel):
    success: bool


class StepOut(BaseModel):
    name: str
    policy: str
    status: str
    error: Optional[str] = None


class SubmitEventResponse(BaseModel):
    success: bool
    id: Optional[Union[int, str]] = None
    created_at: str
    steps: list[StepOut]


class DeleteListingRequest(BaseModel):
    id: Union[int, str]
    secret: Optional[str] = None


class DeleteListingResponse(BaseModel):
    success: bool
    steps: list[StepOut]


class ListingResponse(BaseModel):
    events: list[EventOut]
    source: Literal["primary", "backup"]


class AuthUrlResponse(BaseModel):
    url: str


class AuthStatusResponse(BaseModel):
    connected: bool


class DriveSaveRequest(BaseModel):
    eventData: dict


class DriveSaveResponse(BaseModel):
    success: bool
    fileId: str


class ErrorResponse(BaseModel):
    error: str
