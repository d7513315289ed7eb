"""Typed models for the map annotation service payloads.

Field names follow the server's JSON (``canUpdate`` stays camelCase) so that
models dump straight back into request bodies. Models that describe
server-owned records allow extra keys, so anything the server adds survives
a fetch → modify → post round trip.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class ErrorResult(BaseModel):
    """Why a call failed — permission, HTTP status, application or timeout."""

    error: str


class SuccessResult(BaseModel):
    """Acknowledgement returned by calls with no payload of their own."""

    success: str


class UserData(BaseModel):
    """The authenticated caller and whether they may write annotations."""

    name: str = ""
    email: str = ""
    orcid: str = ""
    canUpdate: bool = False


class AuthenticateResponse(BaseModel):
    """Success payload of the ``authenticate`` endpoint."""

    session: str
    data: UserData


class FeatureGeometry(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    coordinates: Any = None


class MapFeature(BaseModel):
    """A feature drawn on a map. Not interpreted here, only carried."""

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    geometry: FeatureGeometry | None = None
    properties: dict[str, Any] = {}


class UserAnnotation(BaseModel):
    """An annotation as the user writes it, before provenance is stamped."""

    model_config = ConfigDict(extra="allow")

    resource: str
    item: str
    evidence: list[str] = []
    comment: str = ""
    body: dict[str, Any] | None = None
    feature: MapFeature | None = None


class Annotation(UserAnnotation):
    """A stored annotation, with creator, creation time and server id."""

    id: str | None = None
    created: str | None = None
    creator: UserData | None = None


def is_error(payload: Any) -> bool:
    """True when a raw response payload is an error result."""
    return isinstance(payload, dict) and "error" in payload
