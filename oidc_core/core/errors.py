"""Error taxonomy for authorization and token issuance."""

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """OAuth error body for the protocol layer."""

    error: str
    error_description: str
    details: dict[str, Any] = {}


class OIDCError(Exception):
    """Base exception for the issuance core."""

    code = "server_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to an OAuth error response body."""
        return ErrorResponse(
            error=self.code,
            error_description=self.message,
            details=self.details,
        )


class ConfigurationError(OIDCError):
    """Invalid or missing configuration, raised at startup."""


class InvalidClientError(OIDCError):
    """The client_id is missing or unknown."""

    code = "invalid_client"


class InvalidScopeError(OIDCError):
    """A requested scope is outside the client's registered set."""

    code = "invalid_scope"

    def __init__(self, scope: str, valid_scopes: set[str] | frozenset[str]) -> None:
        self.scope = scope
        self.valid_scopes = frozenset(valid_scopes)
        super().__init__(
            f"Invalid scope: {scope}",
            {"valid_scopes": sorted(self.valid_scopes)},
        )


class NonceReplayError(OIDCError):
    """A nonce was presented twice for the same client."""

    code = "invalid_request"

    def __init__(self, client_id: str, value: str) -> None:
        self.client_id = client_id
        self.value = value
        super().__init__("Nonce has already been used")


class SigningError(OIDCError):
    """Signing failed; the token must not be issued."""


class DuplicateNonceError(Exception):
    """Persistence-level uniqueness violation for a live nonce."""

    def __init__(self, client_id: str, value: str) -> None:
        self.client_id = client_id
        self.value = value
        super().__init__(f"Nonce already stored for client {client_id}")
