"""SQLAlchemy models for OAuth clients and authorization nonces."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from oidc_core.db.base import BaseEntity


class OAuthClientEntity(BaseEntity):
    """Registered OAuth client (relying party)."""

    __tablename__ = "oauth_clients"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    id_token_validity_seconds: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    preferred_signing_alg: Mapped[str | None] = mapped_column(
        String(10), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class NonceEntity(BaseEntity):
    """Authorization nonce recorded to detect request replay.

    Rows past ``expire_date`` are dead for replay purposes even before they
    are purged.
    """

    __tablename__ = "nonces"
    __table_args__ = (
        UniqueConstraint("client_id", "value", name="uq_nonces_client_value"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[str] = mapped_column(String(48), nullable=False, index=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    use_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    expire_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
