import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "change-me-in-production"
LOCAL_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # "development" or "production"
    environment: str = "development"

    # ── Storage ──
    database_url: str = "postgresql+asyncpg://localhost/opsboard"
    encryption_key: str = ""  # Fernet key for vault passwords and integration tokens

    # ── Access ──
    secret_key: str = DEFAULT_SECRET_KEY
    api_key: str = ""  # empty in development = auth disabled
    session_cookie_name: str = "session-token"
    access_token_expire_minutes: int = 60 * 24 * 7
    first_admin_email: str = ""
    first_admin_password: str = ""
    cors_origins: str = ",".join(LOCAL_ORIGINS)

    # ── AI copy assistant ("provider:model") ──
    ai_model_id: str = "openai:gpt-4o-mini"
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ── Meta Graph API ──
    meta_graph_base_url: str = "https://graph.facebook.com"
    meta_api_version: str = "v21.0"
    meta_request_timeout: float = 15.0
    meta_listing_limit: int = 100
    meta_max_concurrency: int = 10

    @model_validator(mode="before")
    @classmethod
    def _asyncpg_scheme(cls, values: dict) -> dict:
        """Managed Postgres hands out postgresql:// URLs; the engine needs the asyncpg driver."""
        if isinstance(values, dict):
            url = values.get("database_url") or ""
            if url.startswith("postgresql://"):
                values["database_url"] = "postgresql+asyncpg://" + url[len("postgresql://"):]
        return values

    @model_validator(mode="after")
    def _require_production_secrets(self) -> "Settings":
        if not self.is_production:
            return self
        if self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError(
                "SECRET_KEY must be set to a secure value in production "
                "(e.g. the output of `openssl rand -hex 32`)."
            )
        if not self.encryption_key:
            raise ValueError(
                "ENCRYPTION_KEY must be set in production "
                "(a key from cryptography.fernet.Fernet.generate_key())."
            )
        if self.is_sqlite or "localhost" in self.database_url:
            logger.warning("DATABASE_URL points at a local database in production.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or list(LOCAL_ORIGINS)

    @property
    def meta_graph_url(self) -> str:
        return f"{self.meta_graph_base_url.rstrip('/')}/{self.meta_api_version}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
