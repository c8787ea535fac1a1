"""Type definitions for authorization and token issuance."""

from collections.abc import Mapping
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from oidc_core.crypto.types import SignedJwt

OPENID_SCOPE = "openid"
ID_TOKEN_SCOPE = "id-token"


def parse_scope(raw: str | None) -> frozenset[str]:
    """Split a space-delimited scope parameter into a set."""
    if not raw:
        return frozenset()
    return frozenset(raw.split())


class Principal(BaseModel):
    """The end-user (or pre-login placeholder) behind a request."""

    model_config = ConfigDict(frozen=True)

    name: str
    authenticated: bool = True


class ClientMetadata(BaseModel):
    """Read-only view of a registered client."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    registered_scopes: frozenset[str] = frozenset()
    id_token_validity_seconds: int | None = None
    preferred_signing_algorithm: str | None = None

    @property
    def is_scoped(self) -> bool:
        """True when the client is restricted to its registered scopes."""
        return bool(self.registered_scopes)


class Nonce(BaseModel):
    """A single-use authorization nonce recorded for a client."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    value: str
    use_date: datetime
    expire_date: datetime

    def is_live(self, now: datetime) -> bool:
        return self.expire_date > now


class AuthorizationContext(BaseModel):
    """Validated authorization request, frozen once built."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    requested_scopes: frozenset[str] = frozenset()
    granted_scopes: frozenset[str] = frozenset()
    requested_nonce: str | None = None
    principal: Principal | None = None
    parameters: Mapping[str, str] = Field(default_factory=dict)

    @property
    def is_openid(self) -> bool:
        return OPENID_SCOPE in self.granted_scopes


class RefreshToken(BaseModel):
    """Refresh token attached to an access token by the issuing flow."""

    jwt: SignedJwt = Field(default_factory=SignedJwt)
    expiration: datetime | None = None


class AccessToken(BaseModel):
    """Access token minted by the issuing flow and decorated by the enhancer.

    ``id_token`` holds the companion entity carrying the signed ID token; the
    relationship is one-to-one.
    """

    jwt: SignedJwt = Field(default_factory=SignedJwt)
    expiration: datetime | None = None
    scope: set[str] = Field(default_factory=set)
    client_id: str
    authentication_id: str | None = None
    token_type: str = "Bearer"
    refresh_token: RefreshToken | None = None
    id_token: "AccessToken | None" = None

    @property
    def value(self) -> str:
        """Compact JWS serialization of the token."""
        return self.jwt.serialize()
