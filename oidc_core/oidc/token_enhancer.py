"""Stamps OIDC claims onto issued access tokens and attaches ID tokens."""

from collections.abc import Mapping
from datetime import datetime, timedelta

import structlog
import uuid_utils

from oidc_core.core.clock import Clock, SystemClock
from oidc_core.crypto.hmac_signer import HmacSigner
from oidc_core.crypto.types import IdTokenClaims, SignedJwt
from oidc_core.oidc.types import (
    ID_TOKEN_SCOPE,
    AccessToken,
    AuthorizationContext,
    ClientMetadata,
)

logger = structlog.get_logger(__name__)


def correlation_nonce() -> str:
    """Random value embedded in token claims so no two JWS payloads repeat."""
    return str(uuid_utils.uuid4())


class ConnectTokenEnhancer:
    """Signs access tokens and, for OpenID requests, builds the ID token.

    ``enhance`` works on a copy of the incoming token, so a signing failure
    leaves the caller's token untouched and no partially signed token escapes.
    """

    def __init__(
        self,
        signer: HmacSigner,
        issuer: str,
        clock: Clock | None = None,
        signers: Mapping[str, HmacSigner] | None = None,
    ) -> None:
        self._signer = signer
        self._issuer = issuer
        self._clock = clock or SystemClock()
        self._signers = dict(signers or {})
        self._signers.setdefault(signer.algorithm.value, signer)

    def signer_for(self, client: ClientMetadata) -> HmacSigner:
        """Pick the client's preferred signer when that algorithm is enabled."""
        preferred = client.preferred_signing_algorithm
        if not preferred:
            return self._signer
        signer = self._signers.get(preferred)
        if signer is None:
            logger.warning(
                "preferred_signing_algorithm_unavailable",
                client_id=client.client_id,
                algorithm=preferred,
            )
            return self._signer
        return signer

    def enhance(
        self,
        access_token: AccessToken,
        context: AuthorizationContext,
        client: ClientMetadata,
        now: datetime | None = None,
    ) -> AccessToken:
        """Return a signed copy of ``access_token`` with claims stamped."""
        now = now or self._clock.now()
        token = access_token.model_copy(deep=True)

        claims = token.jwt.claims
        claims.aud = context.client_id
        claims.iss = self._issuer
        claims.iat = now
        claims.exp = token.expiration
        claims.nonce = correlation_nonce()

        refresh = token.refresh_token
        if refresh is not None and not refresh.jwt.claims.nonce:
            refresh.jwt.claims.nonce = correlation_nonce()

        self._signer.sign_jwt(token.jwt)

        # Only the authorization request's scope decides whether this is an
        # OpenID request; the token request may omit scope entirely.
        if context.is_openid:
            token.id_token = self._build_id_token(token, context, client, now)
            logger.info(
                "id_token_issued",
                client_id=context.client_id,
                expires=bool(token.id_token.expiration),
            )

        return token

    def _build_id_token(
        self,
        parent: AccessToken,
        context: AuthorizationContext,
        client: ClientMetadata,
        now: datetime,
    ) -> AccessToken:
        expiration = None
        if client.id_token_validity_seconds is not None:
            expiration = now + timedelta(seconds=client.id_token_validity_seconds)

        principal = context.principal
        claims = IdTokenClaims(
            iss=self._issuer,
            sub=principal.name if principal is not None else context.client_id,
            aud=context.client_id,
            iat=now,
            auth_time=now,
            exp=expiration,
        )
        if context.requested_nonce:
            claims.nonce = context.requested_nonce

        id_jwt = self.signer_for(client).sign_jwt(SignedJwt(claims=claims))

        return AccessToken(
            jwt=id_jwt,
            expiration=expiration,
            scope={ID_TOKEN_SCOPE},
            client_id=parent.client_id,
            authentication_id=parent.authentication_id,
        )
