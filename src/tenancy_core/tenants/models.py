"""Tenant entity."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


class TenantStatus(str, Enum):
    """Lifecycle status of a tenant."""

    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class DeploymentMode(str, Enum):
    """Where a tenant's workloads run."""

    DEDICATED = "dedicated"
    SHARED = "shared"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp column (naive values are taken as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Tenant:
    """A customer deployment.

    ``namespace`` and ``db_connection_string`` are set together or not at all;
    use :meth:`set_deployment` and :meth:`clear_deployment` to change them.
    """

    tenant_id: str
    company_name: str
    owner_email: str = ""
    owner_name: str = ""
    tier: str = "free"
    status: TenantStatus = TenantStatus.ACTIVE
    deployment_mode: DeploymentMode = DeploymentMode.DEDICATED
    namespace: str | None = None
    db_connection_string: str | None = None
    custom_domain: str | None = None
    domain_verified: bool = False
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    trial_ends_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.namespace is None) != (self.db_connection_string is None):
            raise ValueError("namespace and db_connection_string must be set together")

    def set_deployment(self, mode: DeploymentMode, namespace: str, db_connection_string: str) -> None:
        """Point the tenant at a new deployment."""
        if not namespace or not db_connection_string:
            raise ValueError("namespace and db_connection_string must be set together")
        self.deployment_mode = mode
        self.namespace = namespace
        self.db_connection_string = db_connection_string

    def clear_deployment(self) -> None:
        self.namespace = None
        self.db_connection_string = None

    def is_trial_expired(self, now: datetime | None = None) -> bool:
        """True when the trial end has passed."""
        return self.trial_ends_at is not None and (now or utcnow()) > self.trial_ends_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        The connection string carries credentials and is left out.
        """
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_name": self.company_name,
            "owner_email": self.owner_email,
            "owner_name": self.owner_name,
            "tier": self.tier,
            "status": self.status.value,
            "deployment_mode": self.deployment_mode.value,
            "namespace": self.namespace,
            "custom_domain": self.custom_domain,
            "domain_verified": self.domain_verified,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "metadata": self.metadata,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "trial_ends_at": format_timestamp(self.trial_ends_at),
        }

    @classmethod
    def from_row(cls, row: Any) -> "Tenant":
        """Create from database row."""
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            company_name=row.company_name,
            owner_email=row.owner_email or "",
            owner_name=row.owner_name or "",
            tier=row.tier,
            status=TenantStatus(row.status),
            deployment_mode=DeploymentMode(row.deployment_mode),
            namespace=row.namespace,
            db_connection_string=row.db_connection_string,
            custom_domain=row.custom_domain,
            domain_verified=bool(row.domain_verified),
            stripe_customer_id=row.stripe_customer_id,
            stripe_subscription_id=row.stripe_subscription_id,
            metadata=json.loads(row.metadata) if row.metadata else {},
            created_at=parse_timestamp(row.created_at) or utcnow(),
            updated_at=parse_timestamp(row.updated_at) or utcnow(),
            trial_ends_at=parse_timestamp(row.trial_ends_at),
        )
