"""Single-use authorization nonces with time-bounded storage."""

from datetime import datetime, timedelta

import structlog

from oidc_core.core.errors import (
    ConfigurationError,
    DuplicateNonceError,
    NonceReplayError,
)
from oidc_core.db.repo_nonce import PersistedNonceStore
from oidc_core.oidc.types import Nonce

logger = structlog.get_logger(__name__)


def require_storage_duration(seconds: int | None) -> timedelta:
    """Validate the configured nonce storage duration."""
    if seconds is None:
        raise ConfigurationError("Nonce storage duration must be set")
    if seconds <= 0:
        raise ConfigurationError(
            "Nonce storage duration must be positive",
            {"nonce_storage_seconds": seconds},
        )
    return timedelta(seconds=seconds)


class NonceService:
    """Records nonces per client and rejects values still within their window."""

    def __init__(
        self, store: PersistedNonceStore, storage_duration: timedelta | None
    ) -> None:
        if storage_duration is None or storage_duration <= timedelta(0):
            raise ConfigurationError("Nonce storage duration must be set")
        self._store = store
        self._storage_duration = storage_duration

    @property
    def storage_duration(self) -> timedelta:
        return self._storage_duration

    async def check_and_record(
        self, client_id: str, value: str, now: datetime
    ) -> Nonce:
        """Record ``value`` for ``client_id`` or raise NonceReplayError."""
        live = await self._store.find_live_by_client(client_id, now)
        if any(n.value == value and n.is_live(now) for n in live):
            logger.warning("nonce_replay_rejected", client_id=client_id)
            raise NonceReplayError(client_id, value)

        nonce = Nonce(
            client_id=client_id,
            value=value,
            use_date=now,
            expire_date=now + self._storage_duration,
        )
        try:
            await self._store.insert(nonce)
        except DuplicateNonceError as exc:
            logger.warning("nonce_replay_rejected", client_id=client_id, race=True)
            raise NonceReplayError(client_id, value) from exc

        logger.debug(
            "nonce_recorded",
            client_id=client_id,
            expire_date=nonce.expire_date.isoformat(),
        )
        return nonce

    async def purge_expired(self, now: datetime) -> int:
        """Housekeeping hook for background reaping of dead nonces."""
        removed = await self._store.purge_expired(now)
        if removed:
            logger.info("nonces_purged", count=removed)
        return removed
