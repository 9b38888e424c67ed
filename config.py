from pydantic import PrivateAttr
from pydantic_settings import BaseSettings

from exceptions import ConfigurationError

PLACEHOLDER_TOKEN_SECRET = "change-me-business-kyc-signing-secret"


class Settings(BaseSettings):
    app_name: str = "Business KYC API"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./business_kyc.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    log_level: str = "INFO"
    log_format: str = "standard"

    # Only applied on dialects that support per-connection isolation (not SQLite)
    workflow_isolation_level: str = "READ COMMITTED"

    token_secret: str = PLACEHOLDER_TOKEN_SECRET
    token_algorithm: str = "HS256"
    frontend_url: str = "http://localhost:3000"
    guarantor_link_ttl_hours: int = 24

    otp_length: int = 6
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 3

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)
    _is_postgresql: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        object.__setattr__(self, "_is_sqlite", "sqlite" in _scheme)
        object.__setattr__(self, "_is_postgresql", "postgresql" in _scheme)

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite

    @property
    def is_postgresql(self) -> bool:
        return self._is_postgresql

    def check_secrets(self) -> None:
        """The placeholder signing secret is only accepted in debug mode."""
        if not self.debug and self.token_secret == PLACEHOLDER_TOKEN_SECRET:
            raise ConfigurationError("TOKEN_SECRET must be set when debug is off")


settings = Settings()
