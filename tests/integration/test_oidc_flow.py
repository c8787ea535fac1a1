"""Integration test: authorization then token issuance through the provider."""

from datetime import timedelta

import jwt
import pytest
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import FixedClock
from oidc_core.core.errors import (
    InvalidClientError,
    InvalidScopeError,
    NonceReplayError,
)
from oidc_core.core.provider import ConnectProvider, create_provider
from oidc_core.core.settings import AuthSettings
from oidc_core.crypto.types import JwtClaims, SignedJwt
from oidc_core.db.models_oauth import OAuthClientEntity
from oidc_core.oidc.types import AccessToken, AuthorizationContext, Principal

SECRET = "flow-test-secret-0123456789abcdef-0123456789abcdef-0123456789abcd"
ISSUER = "http://localhost:8000"
CLIENT_ID = "acme-app"
ALICE = Principal(name="alice")
NONCE_WINDOW_SECONDS = 300


@pytest.fixture
async def provider(
    session_factory: async_sessionmaker[AsyncSession], clock: FixedClock
) -> ConnectProvider:
    """Provider over a seeded in-memory database."""
    async with session_factory() as session:
        session.add(
            OAuthClientEntity(
                id=CLIENT_ID,
                client_name="Acme",
                scope="openid email",
                id_token_validity_seconds=3600,
            )
        )
        await session.commit()

    settings = AuthSettings(
        issuer_url=ISSUER,
        signing_secret=SecretStr(SECRET),
        nonce_storage_seconds=NONCE_WINDOW_SECONDS,
    )
    return create_provider(settings, session_factory, clock=clock)


async def _issue(
    provider: ConnectProvider, context: AuthorizationContext, clock: FixedClock
) -> AccessToken:
    """Stand in for the issuing flow: mint an unsigned token, then enhance it."""
    client = await provider.load_client(context.client_id)
    assert client is not None
    unsigned = AccessToken(
        jwt=SignedJwt(claims=JwtClaims(sub=ALICE.name)),
        expiration=clock.now() + timedelta(hours=1),
        scope=set(context.granted_scopes),
        client_id=context.client_id,
    )
    return provider.enhance_token(unsigned, context, client)


class TestAuthorizationToToken:
    """End-to-end flows for the acme-app client."""

    async def test_empty_scope_yields_no_id_token(
        self, provider: ConnectProvider, clock: FixedClock
    ) -> None:
        context = await provider.validate_authorization_request(
            {"client_id": CLIENT_ID, "scope": "", "nonce": "n1"}, ALICE
        )
        assert context.granted_scopes == {"email"}

        token = await _issue(provider, context, clock)
        assert token.id_token is None
        assert token.jwt.is_signed

    async def test_openid_scope_yields_id_token(
        self, provider: ConnectProvider, clock: FixedClock
    ) -> None:
        t0 = clock.now()
        context = await provider.validate_authorization_request(
            {"client_id": CLIENT_ID, "scope": "openid email", "nonce": "n1"}, ALICE
        )
        assert context.granted_scopes == {"openid", "email"}

        token = await _issue(provider, context, clock)
        assert token.id_token is not None
        payload = jwt.decode(
            token.id_token.value,
            SECRET,
            algorithms=["HS256"],
            audience=CLIENT_ID,
            issuer=ISSUER,
        )
        assert payload["sub"] == "alice"
        assert payload["aud"] == CLIENT_ID
        assert payload["nonce"] == "n1"
        assert payload["exp"] == int((t0 + timedelta(seconds=3600)).timestamp())

        access = provider.signer.verify_token(token.value, ISSUER, CLIENT_ID)
        assert access.nonce and access.nonce != "n1"

    async def test_replay_across_requests_rejected(
        self, provider: ConnectProvider, clock: FixedClock
    ) -> None:
        params = {"client_id": CLIENT_ID, "scope": "openid", "nonce": "n-replay"}
        await provider.validate_authorization_request(params, ALICE)
        clock.advance(NONCE_WINDOW_SECONDS - 1)
        with pytest.raises(NonceReplayError):
            await provider.validate_authorization_request(params, ALICE)
        clock.advance(1)
        context = await provider.validate_authorization_request(params, ALICE)
        assert context.requested_nonce == "n-replay"

    async def test_invalid_scope_rejected(self, provider: ConnectProvider) -> None:
        with pytest.raises(InvalidScopeError) as exc_info:
            await provider.validate_authorization_request(
                {"client_id": CLIENT_ID, "scope": "openid profile"}, ALICE
            )
        assert exc_info.value.scope == "profile"

    async def test_unknown_client_rejected(self, provider: ConnectProvider) -> None:
        with pytest.raises(InvalidClientError):
            await provider.validate_authorization_request({"client_id": "nope"}, ALICE)

    async def test_purge_expired_nonces(
        self, provider: ConnectProvider, clock: FixedClock
    ) -> None:
        await provider.validate_authorization_request(
            {"client_id": CLIENT_ID, "nonce": "n-old"}, ALICE
        )
        assert await provider.purge_expired_nonces() == 0
        clock.advance(NONCE_WINDOW_SECONDS)
        assert await provider.purge_expired_nonces() == 1
