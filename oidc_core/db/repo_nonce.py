"""Nonce persistence for replay detection."""

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oidc_core.core.clock import as_utc
from oidc_core.core.errors import DuplicateNonceError
from oidc_core.db.models_oauth import NonceEntity
from oidc_core.oidc.types import Nonce


class PersistedNonceStore(Protocol):
    """Storage collaborator for the nonce service."""

    async def find_live_by_client(self, client_id: str, now: datetime) -> list[Nonce]:
        ...

    async def insert(self, nonce: Nonce) -> None: ...

    async def purge_expired(self, now: datetime) -> int: ...


def _to_nonce(entity: NonceEntity) -> Nonce:
    return Nonce(
        client_id=entity.client_id,
        value=entity.value,
        use_date=as_utc(entity.use_date),
        expire_date=as_utc(entity.expire_date),
    )


class SqlNonceRepository:
    """PersistedNonceStore over an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_live_by_client(self, client_id: str, now: datetime) -> list[Nonce]:
        """Return the client's nonces that have not yet expired."""
        stmt = select(NonceEntity).where(
            NonceEntity.client_id == client_id,
            NonceEntity.expire_date > now,
        )
        result = await self._session.execute(stmt)
        return [_to_nonce(e) for e in result.scalars().all()]

    async def insert(self, nonce: Nonce) -> None:
        """Store ``nonce``; a live duplicate raises DuplicateNonceError.

        An expired row with the same value is cleared first so the unique
        constraint only ever guards live nonces.
        """
        await self._session.execute(
            delete(NonceEntity).where(
                NonceEntity.client_id == nonce.client_id,
                NonceEntity.value == nonce.value,
                NonceEntity.expire_date <= nonce.use_date,
            )
        )
        try:
            async with self._session.begin_nested():
                self._session.add(
                    NonceEntity(
                        client_id=nonce.client_id,
                        value=nonce.value,
                        use_date=nonce.use_date,
                        expire_date=nonce.expire_date,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateNonceError(nonce.client_id, nonce.value) from exc

    async def purge_expired(self, now: datetime) -> int:
        """Delete nonces whose expiry has passed, returning the count."""
        result = await self._session.execute(
            delete(NonceEntity).where(NonceEntity.expire_date <= now)
        )
        await self._session.flush()
        return result.rowcount or 0
