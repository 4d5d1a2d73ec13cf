"""Configuration loading with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from tenancy_core.exceptions import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class FrozenModel(BaseModel):
    """Immutable configuration section."""

    model_config = ConfigDict(frozen=True)


class TierLimitsConfig(FrozenModel):
    """Resource envelope for one subscription tier."""

    postgres_instances: int = 1
    postgres_storage_size: str = "10Gi"
    postgres_memory_request: str = "256Mi"
    postgres_memory_limit: str = "512Mi"
    postgres_cpu_request: str = "100m"
    postgres_cpu_limit: str = "500m"
    api_replicas: int = 1
    api_memory_request: str = "256Mi"
    api_memory_limit: str = "512Mi"
    api_cpu_request: str = "100m"
    api_cpu_limit: str = "500m"
    web_replicas: int = 1
    web_memory_request: str = "128Mi"
    web_memory_limit: str = "256Mi"
    web_cpu_request: str = "50m"
    web_cpu_limit: str = "250m"
    mechanic_limit: int | None = None  # None means unlimited
    expiration_days: int | None = None  # Trial length, demo only
    backup_enabled: bool = False
    storage_class: str | None = None


class AdminCredentialsConfig(FrozenModel):
    """Default admin identity handed out with a new tenant."""

    username: str = "admin"
    password: str = "ChangeMeOnFirstLogin!"


class RegistryConfig(FrozenModel):
    """Container image locations used in rendered chart values."""

    api_repository: str = "ghcr.io/mechanicbuddy/api"
    web_repository: str = "ghcr.io/mechanicbuddy/web"
    migrations_repository: str = "ghcr.io/mechanicbuddy/dbup"
    default_tag: str = "latest"
    pull_policy: str = "IfNotPresent"


class ProvisioningConfig(FrozenModel):
    """Tenant provisioning settings."""

    chart_path: str = "/app/infrastructure/helm/charts/mechanicbuddy-tenant"
    base_domain: str = "mechanicbuddy.app"
    namespace_prefix: str = "tenant-"
    cluster_issuer: str = "letsencrypt-prod"
    provisioning_timeout_seconds: int = 600
    pod_ready_timeout_seconds: int = 300
    database_ready_timeout_seconds: int = 600
    migration_timeout_seconds: int = 300
    poll_interval_seconds: float = 5.0
    storage_class: str = "local-path"
    default_admin: AdminCredentialsConfig = Field(default_factory=AdminCredentialsConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    # Empty means the built-in tier table
    tiers: dict[str, TierLimitsConfig] = Field(default_factory=dict)


class SharedInstanceConfig(FrozenModel):
    """Shared (multiplexed) deployment coordinates."""

    namespace: str = "mechanicbuddy-free-tier"
    postgres_host: str = "postgres-shared"
    postgres_port: int = 5432
    forward_host: str = "mechanicbuddy-free-tier.mechanicbuddy-free-tier.svc.cluster.local"
    forward_port: int = 80


class DedicatedInstanceConfig(FrozenModel):
    """Where the proxy forwards traffic for dedicated tenants."""

    forward_host: str = "192.168.1.100"
    forward_port: int = 31840


class DomainsConfig(FrozenModel):
    """Custom domain verification settings."""

    product: str = "mechanicbuddy"
    verification_ttl_days: int = 7
    file_check_timeout_seconds: float = 10.0


class BackendConfig(FrozenModel):
    """Collaborator backend selection plus backend-specific settings."""

    model_config = ConfigDict(frozen=True, extra="allow")

    backend: str = "memory"

    def options(self) -> dict[str, Any]:
        """Backend-specific settings as keyword arguments."""
        return dict(self.model_extra or {})


class BackendsConfig(FrozenModel):
    """External collaborator backends."""

    cluster: BackendConfig = Field(default_factory=BackendConfig)
    charts: BackendConfig = Field(default_factory=BackendConfig)
    tenant_db: BackendConfig = Field(default_factory=BackendConfig)
    proxy: BackendConfig = Field(default_factory=BackendConfig)
    dns: BackendConfig | None = None
    resolver: BackendConfig = Field(default_factory=BackendConfig)


class DatabaseStorageConfig(FrozenModel):
    """Control-plane database configuration."""

    backend: str = "sqlite"
    path: str | None = None  # For SQLite


class StorageConfig(FrozenModel):
    """Storage backends configuration."""

    database: DatabaseStorageConfig = Field(default_factory=DatabaseStorageConfig)


class ServerConfig(FrozenModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=list)


class LoggingConfig(FrozenModel):
    """Process logging configuration."""

    level: str = "INFO"
    format: str = "json"  # json | text


class Config(FrozenModel):
    """Main configuration for tenancy-core."""

    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    shared_instance: SharedInstanceConfig = Field(default_factory=SharedInstanceConfig)
    dedicated_instance: DedicatedInstanceConfig = Field(default_factory=DedicatedInstanceConfig)
    domains: DomainsConfig = Field(default_factory=DomainsConfig)
    backends: BackendsConfig = Field(default_factory=BackendsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            with path.open() as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot load configuration from {path}: {e}") from e

        # Substitute environment variables
        data = substitute_env_vars(data or {})
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)
