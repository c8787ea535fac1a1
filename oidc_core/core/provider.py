"""Composition root wiring the issuance core from settings."""

from collections.abc import Mapping
from datetime import datetime

import structlog
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oidc_core.core.clock import Clock, SystemClock
from oidc_core.core.errors import ConfigurationError
from oidc_core.core.log_config import configure_logging
from oidc_core.core.settings import AuthSettings
from oidc_core.crypto.hmac_signer import HmacSigner
from oidc_core.db.engine import create_session_factory, transaction
from oidc_core.db.repo_nonce import SqlNonceRepository
from oidc_core.db.repo_oauth import SqlClientRegistry
from oidc_core.oidc.authorization import (
    AuthenticatedPredicate,
    AuthorizationRequestValidator,
    is_authenticated_user,
)
from oidc_core.oidc.nonce_service import NonceService, require_storage_duration
from oidc_core.oidc.token_enhancer import ConnectTokenEnhancer
from oidc_core.oidc.types import (
    AccessToken,
    AuthorizationContext,
    ClientMetadata,
    Principal,
)

logger = structlog.get_logger(__name__)


def _secret_value(secret: SecretStr | None) -> str:
    if secret is None or not secret.get_secret_value():
        raise ConfigurationError("AUTH_SIGNING_SECRET must be set")
    return secret.get_secret_value()


class ConnectProvider:
    """Entry points the surrounding server calls per request.

    Everything that can be misconfigured is checked in ``__init__`` so a bad
    deployment fails at startup rather than on the first request.
    """

    def __init__(
        self,
        settings: AuthSettings,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        is_authenticated: AuthenticatedPredicate = is_authenticated_user,
    ) -> None:
        secret = _secret_value(settings.signing_secret)
        signers = {
            alg: HmacSigner(secret, alg)
            for alg in settings.get_signing_algorithm_list()
        }
        self._settings = settings
        self._sessions = session_factory
        self._clock = clock or SystemClock()
        self._is_authenticated = is_authenticated
        self._nonce_duration = require_storage_duration(
            settings.nonce_storage_seconds
        )
        self.signer = signers[settings.signing_algorithm]
        self.enhancer = ConnectTokenEnhancer(
            self.signer,
            issuer=settings.issuer_url,
            clock=self._clock,
            signers=signers,
        )

    def request_validator(self, session: AsyncSession) -> AuthorizationRequestValidator:
        """Build a validator bound to one request's session."""
        return AuthorizationRequestValidator(
            clients=SqlClientRegistry(session),
            nonces=NonceService(SqlNonceRepository(session), self._nonce_duration),
            clock=self._clock,
            is_authenticated=self._is_authenticated,
            strip_openid_from_default_scope=(
                self._settings.strip_openid_from_default_scope
            ),
        )

    async def validate_authorization_request(
        self,
        parameters: Mapping[str, str],
        principal: Principal | None,
        now: datetime | None = None,
    ) -> AuthorizationContext:
        """Validate one authorization exchange in its own transaction."""
        async with transaction(self._sessions) as session:
            validator = self.request_validator(session)
            return await validator.validate_authorization_request(
                parameters, principal, now
            )

    def enhance_token(
        self,
        access_token: AccessToken,
        context: AuthorizationContext,
        client: ClientMetadata,
        now: datetime | None = None,
    ) -> AccessToken:
        """Decorate and sign one freshly minted access token."""
        return self.enhancer.enhance(access_token, context, client, now)

    async def load_client(self, client_id: str) -> ClientMetadata | None:
        """Look up client metadata for the token-issuance step."""
        async with transaction(self._sessions) as session:
            return await SqlClientRegistry(session).load_by_client_id(client_id)

    async def purge_expired_nonces(self, now: datetime | None = None) -> int:
        """Background housekeeping: drop nonces past their expiry."""
        async with transaction(self._sessions) as session:
            service = NonceService(SqlNonceRepository(session), self._nonce_duration)
            return await service.purge_expired(now or self._clock.now())


def create_provider(
    settings: AuthSettings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock | None = None,
) -> ConnectProvider:
    """Build and validate the provider at process startup."""
    settings = settings or AuthSettings()
    configure_logging(settings.log_level, settings.log_json)
    provider = ConnectProvider(
        settings,
        session_factory or create_session_factory(),
        clock=clock,
    )
    logger.info(
        "provider_started",
        issuer=settings.issuer_url,
        algorithm=provider.signer.algorithm.value,
    )
    return provider
