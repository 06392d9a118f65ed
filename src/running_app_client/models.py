"""Pydantic models for the running app client.

Request descriptors, token pairs and auth events are frozen models; the
response envelope is a plain generic dataclass since it carries
``httpx.Headers``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

RAW_BODY_TYPES = (bytes, bytearray, str)


class RequestDescriptor(BaseModel):
    """Everything needed to issue one logical request, retries included."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str = Field(..., min_length=1)
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    timeout: Annotated[float, Field(ge=0)] = 10.0
    retries: Annotated[int, Field(ge=0)] = 3
    retry_delay: Annotated[float, Field(ge=0)] = 1.0

    # Attach the stored token; fail fast when none is stored
    requires_auth: bool = True
    # Never attach a token, even if one is stored
    skip_auth: bool = False

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        """Upper-case the HTTP method."""
        return v.upper()

    @property
    def has_raw_body(self) -> bool:
        """Body is sent as-is rather than JSON encoded."""
        return isinstance(self.body, RAW_BODY_TYPES)


@dataclass(frozen=True)
class ResponseEnvelope(Generic[T]):
    """Decoded successful response."""

    data: T
    status: int
    headers: httpx.Headers


class TokenPair(BaseModel):
    """Access/refresh token pair as persisted by a token store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(..., min_length=1, alias="accessToken")
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")

    def __repr__(self) -> str:
        return "TokenPair(access_token='***', refresh_token='***')"


class RefreshResponse(BaseModel):
    """Body returned by the refresh endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")


class AuthEvent(StrEnum):
    """Event names published on the auth event bus."""

    TOKEN_REFRESHED = "tokenRefreshed"
    AUTHENTICATION_FAILED = "authenticationFailed"


class TokenRefreshedEvent(BaseModel):
    """Published after a refresh stored a new token pair."""

    model_config = ConfigDict(frozen=True)

    access_token: str


class AuthenticationFailedEvent(BaseModel):
    """Published when the session can no longer be authenticated."""

    model_config = ConfigDict(frozen=True)

    message: str
    status: int | None = None
    url: str | None = None
