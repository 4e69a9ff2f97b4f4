"""JSON:API envelope models for the operator API.

Mutation endpoints accept a ``JSONAPIRequest`` wrapper and every endpoint
answers with one of the response envelopes below. Webhook endpoints do not
use these: they speak each chat platform's own wire format.

Reference: https://jsonapi.org/format/
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class JSONAPIRequestData(BaseModel, Generic[T]):
    """The ``data`` object inside a JSON:API request body."""

    type: str
    attributes: T


class JSONAPIRequest(BaseModel, Generic[T]):
    """Request envelope ``{ data: { type, attributes } }``."""

    data: JSONAPIRequestData[T]


class JSONAPIResource(BaseModel):
    """A single resource object with type, id, and attributes."""

    type: str
    id: str
    attributes: dict[str, Any]
    relationships: dict[str, Any] | None = None


class JSONAPISingleResponse(BaseModel):
    data: JSONAPIResource
    meta: dict[str, Any] | None = None


class JSONAPIListResponse(BaseModel):
    data: list[JSONAPIResource]
    meta: dict[str, Any] | None = None
    links: dict[str, Any] | None = None
