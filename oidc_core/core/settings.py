"""Application settings loaded from environment variables."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SIGNING_ALGORITHM = "HS256"
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_DB_")

    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "oidc"
    password: str = "oidc"
    database: str = "oidc"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class AuthSettings(BaseSettings):
    """Token issuance settings.

    ``signing_secret`` and ``nonce_storage_seconds`` have no usable default;
    ``create_provider`` refuses to start without them.
    """

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    issuer_url: str = "http://localhost:8000"
    signing_secret: SecretStr | None = None
    signing_algorithm: str = DEFAULT_SIGNING_ALGORITHM
    signing_algorithms: str = ""
    nonce_storage_seconds: int | None = None
    strip_openid_from_default_scope: bool = True
    log_level: str = "info"
    log_json: bool = False

    def get_signing_algorithm_list(self) -> list[str]:
        """Parse comma-separated extra algorithms, default algorithm first."""
        algorithms = [self.signing_algorithm]
        for alg in self.signing_algorithms.split(","):
            alg = alg.strip()
            if alg and alg not in algorithms:
                algorithms.append(alg)
        return algorithms
