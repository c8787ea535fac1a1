"""Type definitions for JWS signing and JWT claims."""

import json
from base64 import urlsafe_b64encode
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretBytes, field_serializer


class JwsAlgorithm(StrEnum):
    """Symmetric JWS algorithms supported by the signer."""

    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"


class SigningKey(BaseModel):
    """Secret material bound to one algorithm."""

    model_config = ConfigDict(frozen=True)

    secret: SecretBytes
    algorithm: JwsAlgorithm = JwsAlgorithm.HS256


def b64url(raw: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class JwtClaims(BaseModel):
    """Registered JWT claims plus any extra claims set by the issuing flow."""

    model_config = ConfigDict(extra="allow")

    iss: str | None = None
    sub: str | None = None
    aud: str | None = None
    iat: datetime | None = None
    exp: datetime | None = None
    nonce: str | None = None

    @field_serializer("iat", "exp")
    def serialize_numeric_date(self, value: datetime | None) -> int | None:
        return None if value is None else int(value.timestamp())

    def to_json(self) -> str:
        """Compact JSON payload with unset claims omitted."""
        return self.model_dump_json(exclude_none=True)


class IdTokenClaims(JwtClaims):
    """OpenID Connect ID token claims."""

    auth_time: datetime | None = None

    @field_serializer("auth_time")
    def serialize_auth_time(self, value: datetime | None) -> int | None:
        return None if value is None else int(value.timestamp())


class SignedJwt(BaseModel):
    """A JWT and, once signed, its JWS signature."""

    header: dict[str, str] = Field(default_factory=lambda: {"typ": "JWT"})
    claims: JwtClaims = Field(default_factory=JwtClaims)
    signature: str | None = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    def signing_input(self) -> str:
        """Return ``base64url(header).base64url(payload)``."""
        header = json.dumps(self.header, separators=(",", ":")).encode("utf-8")
        payload = self.claims.to_json().encode("utf-8")
        return f"{b64url(header)}.{b64url(payload)}"

    def serialize(self) -> str:
        """JWS compact serialization; unsigned tokens have an empty signature."""
        return f"{self.signing_input()}.{self.signature or ''}"


class DecodedToken(BaseModel):
    """Decoded and verified JWT claims."""

    model_config = ConfigDict(extra="allow")

    iss: str = ""
    sub: str | None = None
    aud: str = ""
    iat: int | None = None
    exp: int | None = None
    auth_time: int | None = None
    nonce: str | None = None
