"""Subscription tier resource limits.

Maps a tier name (plus optional per-request overrides) to the resource
envelope a tenant deployment gets: database instances and storage, API and
web replica counts with their CPU/memory requests and limits, the mechanic
seat limit, backup flag and trial length.
"""

import re
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

from tenancy_core.config import TierLimitsConfig

TIER_NAMES = ("free", "standard", "growth", "scale", "team", "lifetime", "demo")

STORAGE_SIZE_RE = re.compile(r"^[1-9][0-9]*(Mi|Gi|Ti)$")

# Inclusive bounds for numeric overrides
OVERRIDE_BOUNDS: dict[str, tuple[int, int]] = {
    "postgres_instances": (1, 5),
    "api_replicas": (1, 10),
    "web_replicas": (1, 10),
    "mechanic_limit": (1, 10000),
}

DEFAULT_TIER_LIMITS: dict[str, TierLimitsConfig] = {
    "demo": TierLimitsConfig(
        postgres_instances=1,
        postgres_storage_size="5Gi",
        postgres_memory_request="128Mi",
        postgres_memory_limit="256Mi",
        postgres_cpu_request="50m",
        postgres_cpu_limit="250m",
        api_replicas=1,
        api_memory_request="128Mi",
        api_memory_limit="256Mi",
        api_cpu_request="50m",
        api_cpu_limit="250m",
        web_replicas=1,
        web_memory_request="64Mi",
        web_memory_limit="128Mi",
        web_cpu_request="25m",
        web_cpu_limit="100m",
        mechanic_limit=2,
        expiration_days=7,
        backup_enabled=False,
    ),
    "free": TierLimitsConfig(
        postgres_instances=1,
        postgres_storage_size="10Gi",
        api_replicas=1,
        web_replicas=1,
        mechanic_limit=5,
        backup_enabled=False,
    ),
    "standard": TierLimitsConfig(
        postgres_instances=1,
        postgres_storage_size="20Gi",
        postgres_memory_request="512Mi",
        postgres_memory_limit="1Gi",
        postgres_cpu_request="250m",
        postgres_cpu_limit="1000m",
        api_replicas=1,
        api_memory_request="512Mi",
        api_memory_limit="1Gi",
        api_cpu_request="250m",
        api_cpu_limit="1000m",
        web_replicas=1,
        mechanic_limit=10,
        backup_enabled=True,
    ),
    "growth": TierLimitsConfig(
        postgres_instances=1,
        postgres_storage_size="50Gi",
        postgres_memory_request="512Mi",
        postgres_memory_limit="1Gi",
        postgres_cpu_request="250m",
        postgres_cpu_limit="1000m",
        api_replicas=2,
        api_memory_request="512Mi",
        api_memory_limit="1Gi",
        api_cpu_request="250m",
        api_cpu_limit="1000m",
        web_replicas=2,
        web_memory_request="256Mi",
        web_memory_limit="512Mi",
        web_cpu_request="100m",
        web_cpu_limit="500m",
        mechanic_limit=20,
        backup_enabled=True,
    ),
    "team": TierLimitsConfig(
        postgres_instances=2,
        postgres_storage_size="100Gi",
        postgres_memory_request="1Gi",
        postgres_memory_limit="2Gi",
        postgres_cpu_request="500m",
        postgres_cpu_limit="2000m",
        api_replicas=2,
        api_memory_request="1Gi",
        api_memory_limit="2Gi",
        api_cpu_request="500m",
        api_cpu_limit="2000m",
        web_replicas=2,
        web_memory_request="256Mi",
        web_memory_limit="512Mi",
        web_cpu_request="100m",
        web_cpu_limit="500m",
        mechanic_limit=50,
        backup_enabled=True,
    ),
    "scale": TierLimitsConfig(
        postgres_instances=3,
        postgres_storage_size="200Gi",
        postgres_memory_request="1Gi",
        postgres_memory_limit="2Gi",
        postgres_cpu_request="500m",
        postgres_cpu_limit="2000m",
        api_replicas=3,
        api_memory_request="1Gi",
        api_memory_limit="2Gi",
        api_cpu_request="500m",
        api_cpu_limit="2000m",
        web_replicas=3,
        web_memory_request="512Mi",
        web_memory_limit="1Gi",
        web_cpu_request="250m",
        web_cpu_limit="1000m",
        mechanic_limit=None,
        backup_enabled=True,
    ),
    "lifetime": TierLimitsConfig(
        postgres_instances=1,
        postgres_storage_size="50Gi",
        postgres_memory_request="512Mi",
        postgres_memory_limit="1Gi",
        postgres_cpu_request="250m",
        postgres_cpu_limit="1000m",
        api_replicas=2,
        api_memory_request="512Mi",
        api_memory_limit="1Gi",
        api_cpu_request="250m",
        api_cpu_limit="1000m",
        web_replicas=2,
        web_memory_request="256Mi",
        web_memory_limit="512Mi",
        web_cpu_request="100m",
        web_cpu_limit="500m",
        mechanic_limit=None,
        backup_enabled=True,
    ),
}


@dataclass(frozen=True)
class ResourceOverrides:
    """Per-request adjustments to the tier envelope."""

    postgres_instances: int | None = None
    postgres_storage_size: str | None = None
    api_replicas: int | None = None
    web_replicas: int | None = None
    mechanic_limit: int | None = None
    storage_class: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ResourceOverrides":
        """Create from dictionary, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def validate(self) -> list[str]:
        """Return human-readable problems with the overrides."""
        errors = []
        if self.postgres_storage_size is not None and not STORAGE_SIZE_RE.match(self.postgres_storage_size):
            errors.append(f"Invalid storage size override: {self.postgres_storage_size}")
        for name in OVERRIDE_BOUNDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, int):
                errors.append(f"Override {name} must be an integer")
        return errors


@dataclass(frozen=True)
class ResourceEnvelope:
    """Resolved resources for one tenant deployment."""

    tier: str
    postgres_instances: int
    postgres_storage_size: str
    postgres_memory_request: str
    postgres_memory_limit: str
    postgres_cpu_request: str
    postgres_cpu_limit: str
    api_replicas: int
    api_memory_request: str
    api_memory_limit: str
    api_cpu_request: str
    api_cpu_limit: str
    web_replicas: int
    web_memory_request: str
    web_memory_limit: str
    web_cpu_request: str
    web_cpu_limit: str
    mechanic_limit: int | None
    expiration_days: int | None
    backup_enabled: bool
    storage_class: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceEnvelope":
        """Create from dictionary."""
        return cls(**{f.name: data[f.name] for f in fields(cls)})


def _clamp(name: str, value: int) -> int:
    low, high = OVERRIDE_BOUNDS[name]
    return max(low, min(high, value))


def is_known_tier(tier: str, tiers: Mapping[str, TierLimitsConfig] | None = None) -> bool:
    """Check whether a tier name is configured."""
    return tier in (tiers or DEFAULT_TIER_LIMITS)


def calculate_resources(
    tier: str,
    overrides: ResourceOverrides | None = None,
    tiers: Mapping[str, TierLimitsConfig] | None = None,
    default_storage_class: str = "local-path",
) -> ResourceEnvelope:
    """Compute the resource envelope for a tier.

    Numeric overrides are clamped into OVERRIDE_BOUNDS; a malformed storage
    size override is ignored (callers validate overrides up front).

    Args:
        tier: Subscription tier name
        overrides: Optional per-request overrides
        tiers: Tier table (defaults to DEFAULT_TIER_LIMITS)
        default_storage_class: Storage class when the tier does not set one

    Returns:
        The resolved ResourceEnvelope

    Raises:
        ValueError: If the tier is unknown
    """
    table = tiers or DEFAULT_TIER_LIMITS
    if tier not in table:
        raise ValueError(f"Invalid subscription tier: {tier}")

    limits = table[tier]
    values: dict[str, Any] = limits.model_dump()
    values["storage_class"] = limits.storage_class or default_storage_class

    if overrides is not None:
        for name in OVERRIDE_BOUNDS:
            value = getattr(overrides, name)
            if isinstance(value, int):
                values[name] = _clamp(name, value)
        if overrides.postgres_storage_size and STORAGE_SIZE_RE.match(overrides.postgres_storage_size):
            values["postgres_storage_size"] = overrides.postgres_storage_size
        if overrides.storage_class:
            values["storage_class"] = overrides.storage_class

    return ResourceEnvelope(tier=tier, **values)
