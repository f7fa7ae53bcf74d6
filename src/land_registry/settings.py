"""
land_registry.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the client core and the reference registry.
- Hide secrets (JWT secret, registry root key) from repr/logging.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    One settings object, injected explicitly:
    - Connection Bootstrap reads only the identity/registry/environment fields.
    - The reference registry service reads the persistence and JWT fields.
    """

    model_config = SettingsConfigDict(env_prefix="LAND_REGISTRY_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "land-registry"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Connection Bootstrap (recognized environment options)
    identity_provider_url: str = "http://localhost:8080"
    registry_host: str = "http://localhost:8080"
    is_development: bool = True
    backend_service_id: str = "land-registry-backend"
    request_timeout_seconds: float = 10.0

    # Pinned root of trust for production; dev clients fetch it from the registry instead.
    registry_root_key: str = Field(default="dev-root-key-change-me-0000000000000000", repr=False)

    # Identity tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "land-registry-identity"
    jwt_audience: str = "land-registry"
    jwt_secret: str = Field(default="dev-secret-change-me-00000000000000000000", repr=False)
    session_ttl_minutes: int = 8 * 60

    # Reference registry persistence
    database_url: str = "sqlite+aiosqlite:///./land_registry.db"
    bootstrap_admins: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# `bootstrap_admins` plays the role of the registry deployer: those principals get `Admin`
# when the reference registry starts, so a fresh database is administrable.
