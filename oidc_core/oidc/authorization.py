"""Authorization request validation and context building."""

from collections.abc import Callable, Mapping
from datetime import datetime

import structlog

from oidc_core.core.clock import Clock, SystemClock
from oidc_core.core.errors import InvalidClientError, InvalidScopeError
from oidc_core.db.repo_oauth import ClientRegistry
from oidc_core.oidc.nonce_service import NonceService
from oidc_core.oidc.types import (
    OPENID_SCOPE,
    AuthorizationContext,
    ClientMetadata,
    Principal,
    parse_scope,
)

logger = structlog.get_logger(__name__)

AuthenticatedPredicate = Callable[[Principal | None], bool]


def is_authenticated_user(principal: Principal | None) -> bool:
    """Default predicate: a principal flagged authenticated by the auth layer."""
    return principal is not None and principal.authenticated


def validate_scope(parameters: Mapping[str, str], client: ClientMetadata) -> None:
    """Reject requested scopes outside a scope-restricted client's set."""
    if "scope" not in parameters or not client.is_scoped:
        return
    # Checked in request order so the first unknown scope is reported.
    for scope in parameters["scope"].split():
        if scope not in client.registered_scopes:
            raise InvalidScopeError(scope, client.registered_scopes)


class AuthorizationRequestValidator:
    """Turns raw authorization parameters into a frozen AuthorizationContext.

    The nonce replay check only runs for authenticated principals. The
    pre-login pass of the same request is validated again after login, and
    the check applies then.
    """

    def __init__(
        self,
        clients: ClientRegistry,
        nonces: NonceService,
        clock: Clock | None = None,
        is_authenticated: AuthenticatedPredicate = is_authenticated_user,
        strip_openid_from_default_scope: bool = True,
    ) -> None:
        self._clients = clients
        self._nonces = nonces
        self._clock = clock or SystemClock()
        self._is_authenticated = is_authenticated
        self._strip_openid = strip_openid_from_default_scope

    async def resolve_client(self, parameters: Mapping[str, str]) -> ClientMetadata:
        client_id = parameters.get("client_id")
        if not client_id:
            raise InvalidClientError("A client id must be provided")
        client = await self._clients.load_by_client_id(client_id)
        if client is None:
            raise InvalidClientError(f"Unknown client: {client_id}")
        return client

    def default_scopes(self, client: ClientMetadata) -> frozenset[str]:
        """Scopes granted when the request names none."""
        if self._strip_openid:
            return client.registered_scopes - {OPENID_SCOPE}
        return client.registered_scopes

    async def build_context(
        self,
        parameters: Mapping[str, str],
        principal: Principal | None,
        now: datetime | None = None,
    ) -> AuthorizationContext:
        """Resolve the client, check the nonce and freeze the granted scopes."""
        client = await self.resolve_client(parameters)
        return await self._build(parameters, client, principal, now)

    async def validate_authorization_request(
        self,
        parameters: Mapping[str, str],
        principal: Principal | None,
        now: datetime | None = None,
    ) -> AuthorizationContext:
        """Validate scope first, then build the context.

        Scope errors are raised before the nonce is recorded.
        """
        client = await self.resolve_client(parameters)
        validate_scope(parameters, client)
        return await self._build(parameters, client, principal, now)

    async def _build(
        self,
        parameters: Mapping[str, str],
        client: ClientMetadata,
        principal: Principal | None,
        now: datetime | None,
    ) -> AuthorizationContext:
        now = now or self._clock.now()

        nonce = parameters.get("nonce")
        if nonce is not None and self._is_authenticated(principal):
            await self._nonces.check_and_record(client.client_id, nonce, now)

        requested = parse_scope(parameters.get("scope"))
        granted = requested or self.default_scopes(client)

        logger.debug(
            "authorization_context_built",
            client_id=client.client_id,
            granted_scopes=sorted(granted),
        )
        return AuthorizationContext(
            client_id=client.client_id,
            requested_scopes=requested,
            granted_scopes=granted,
            requested_nonce=nonce,
            principal=principal,
            parameters=dict(parameters),
        )
