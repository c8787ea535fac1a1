"""Client registry backed by the oauth_clients table."""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_core.db.models_oauth import OAuthClientEntity
from oidc_core.oidc.types import ClientMetadata, parse_scope


class ClientRegistry(Protocol):
    """Lookup of registered client metadata."""

    async def load_by_client_id(self, client_id: str) -> ClientMetadata | None: ...


def to_client_metadata(entity: OAuthClientEntity) -> ClientMetadata:
    """Convert a client row into the read-only metadata view."""
    return ClientMetadata(
        client_id=entity.id,
        registered_scopes=parse_scope(entity.scope),
        id_token_validity_seconds=entity.id_token_validity_seconds,
        preferred_signing_algorithm=entity.preferred_signing_alg,
    )


class SqlClientRegistry:
    """ClientRegistry over an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load_by_client_id(self, client_id: str) -> ClientMetadata | None:
        """Look up an active OAuth client by ID."""
        stmt = select(OAuthClientEntity).where(
            OAuthClientEntity.id == client_id,
            OAuthClientEntity.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        entity = result.scalar_one_or_none()
        if entity is None:
            return None
        return to_client_metadata(entity)
