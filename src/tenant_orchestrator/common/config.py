"""Tenant orchestrator configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class OrchestratorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ORCH_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/orchestrator.db"
    db_pool_size: int = 20  # bounds concurrent sagas; ignored for SQLite

    # API
    api_title: str = "Tenant Orchestrator"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000"]

    # Container runtime
    runtime_driver: str = "docker"  # "docker" or "memory"
    docker_binary: str = "docker"
    command_timeout: float = 120.0  # seconds

    # Manifests
    manifest_dir: str = "./data/tenants"
    manifest_template: str = ""  # empty = packaged template

    # Tenant addressing
    base_domain: str = "app.bythewise.com"
    seed_subnet: str = "172.100.0.0/24"

    # Readiness probe
    readiness_max_attempts: int = 30
    readiness_interval: float = 2.0  # seconds
    app_health_url: str = "http://localhost:5678/healthz"

    # Metrics
    metrics_window_days: int = 30

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"ORCH_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default API key, set ORCH_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> OrchestratorSettings:
    settings = OrchestratorSettings()
    settings.validate_for_production()
    return settings
