"""JWS signing and verification using HMAC (HS256/HS384/HS512)."""

import secrets

import jwt
import structlog
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, hmac
from jwt.types import Options

from oidc_core.core.errors import ConfigurationError, SigningError
from oidc_core.crypto.types import (
    DecodedToken,
    JwsAlgorithm,
    SignedJwt,
    SigningKey,
    b64url,
)

logger = structlog.get_logger(__name__)

_HASHES: dict[JwsAlgorithm, type[hashes.HashAlgorithm]] = {
    JwsAlgorithm.HS256: hashes.SHA256,
    JwsAlgorithm.HS384: hashes.SHA384,
    JwsAlgorithm.HS512: hashes.SHA512,
}


def parse_algorithm(name: str) -> JwsAlgorithm:
    """Resolve a JWA name, raising ConfigurationError when unsupported."""
    try:
        return JwsAlgorithm(name)
    except ValueError:
        raise ConfigurationError(
            f"Unsupported signing algorithm: {name}",
            {"supported": [a.value for a in JwsAlgorithm]},
        ) from None


def generate_secret(algorithm: str = JwsAlgorithm.HS256) -> str:
    """Generate a random secret as wide as the algorithm's hash output."""
    digest_size = _HASHES[parse_algorithm(algorithm)].digest_size
    return secrets.token_urlsafe(digest_size)


class HmacSigner:
    """Signs and verifies JWS tokens with a shared secret.

    The key is bound at construction and never changes, so one instance can
    be shared by concurrent requests.
    """

    def __init__(
        self,
        secret: str | bytes | None,
        algorithm: str = JwsAlgorithm.HS256,
    ) -> None:
        if not secret:
            raise ConfigurationError("A signing secret must be supplied")
        raw = secret.encode("utf-8") if isinstance(secret, str) else secret
        alg = parse_algorithm(algorithm)
        if len(raw) < _HASHES[alg].digest_size:
            logger.warning(
                "signing_secret_shorter_than_hash",
                algorithm=alg.value,
                secret_bytes=len(raw),
            )
        self._key = SigningKey(secret=raw, algorithm=alg)

    @property
    def algorithm(self) -> JwsAlgorithm:
        return self._key.algorithm

    def _digest(self, signing_input: str) -> bytes:
        mac = hmac.HMAC(
            self._key.secret.get_secret_value(),
            _HASHES[self._key.algorithm](),
        )
        mac.update(signing_input.encode("utf-8"))
        return mac.finalize()

    def sign(self, signing_input: str) -> str:
        """Return the unpadded base64url MAC of ``signing_input``."""
        try:
            digest = self._digest(signing_input)
        except (UnicodeEncodeError, UnsupportedAlgorithm, TypeError) as exc:
            logger.error(
                "signing_failed",
                algorithm=self._key.algorithm.value,
                error=str(exc),
            )
            raise SigningError("Could not sign token") from exc
        return b64url(digest)

    def verify(self, signing_input: str, signature: str) -> bool:
        """Constant-time check of ``signature`` against ``signing_input``."""
        try:
            expected = self.sign(signing_input)
        except SigningError:
            return False
        return secrets.compare_digest(
            expected.encode("ascii"), signature.encode("utf-8")
        )

    def sign_jwt(self, token: SignedJwt) -> SignedJwt:
        """Stamp the algorithm header and signature onto ``token`` in place."""
        token.header["alg"] = self._key.algorithm.value
        try:
            signing_input = token.signing_input()
        except ValueError as exc:
            raise SigningError("Could not encode token claims") from exc
        token.signature = self.sign(signing_input)
        return token

    def verify_token(
        self, token: str, issuer: str | None = None, audience: str | None = None
    ) -> DecodedToken:
        """Verify and decode a compact JWS produced by this signer."""
        opts: Options = {}
        if audience is None:
            opts["verify_aud"] = False
        raw = jwt.decode(
            token,
            self._key.secret.get_secret_value(),
            algorithms=[self._key.algorithm.value],
            issuer=issuer,
            audience=audience,
            options=opts,
        )
        return DecodedToken.model_validate(raw)
