"""Provisioning request and result types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tenancy_core.provisioning.tiers import ResourceEnvelope, ResourceOverrides


class StepLevel(str, Enum):
    """Severity of a step log entry."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass
class ProvisioningRequest:
    """What the caller asks to be provisioned."""

    company_name: str
    owner_email: str = ""
    owner_first_name: str = ""
    owner_last_name: str = ""
    tier: str = "free"
    tenant_id: str | None = None
    custom_domain: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    populate_sample_data: bool = False
    extra_env: dict[str, str] = field(default_factory=dict)
    overrides: ResourceOverrides = field(default_factory=ResourceOverrides)

    @property
    def owner_name(self) -> str:
        return f"{self.owner_first_name} {self.owner_last_name}".strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvisioningRequest":
        """Create from a request body dictionary."""
        return cls(
            company_name=data.get("company_name", ""),
            owner_email=data.get("owner_email", ""),
            owner_first_name=data.get("owner_first_name", ""),
            owner_last_name=data.get("owner_last_name", ""),
            tier=data.get("tier", "free"),
            tenant_id=data.get("tenant_id") or None,
            custom_domain=data.get("custom_domain") or None,
            stripe_customer_id=data.get("stripe_customer_id"),
            stripe_subscription_id=data.get("stripe_subscription_id"),
            populate_sample_data=bool(data.get("populate_sample_data", False)),
            extra_env=dict(data.get("extra_env") or {}),
            overrides=ResourceOverrides.from_dict(data.get("overrides")),
        )


@dataclass
class StepLogEntry:
    """One line of the provisioning audit trail."""

    timestamp: datetime
    level: StepLevel
    step: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "step": self.step,
            "message": self.message,
        }


@dataclass
class ProvisioningResult:
    """Outcome of a provision or update call.

    ``logs`` is the ordered audit trail and is returned intact on failure.
    """

    success: bool = False
    tenant_id: str | None = None
    namespace: str | None = None
    release_name: str | None = None
    tenant_url: str | None = None
    api_url: str | None = None
    admin_username: str | None = None
    admin_password: str | None = None
    resources: ResourceEnvelope | None = None
    expires_at: datetime | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    error_message: str | None = None
    validation_errors: list[str] = field(default_factory=list)
    logs: list[StepLogEntry] = field(default_factory=list)

    def add_log(self, level: StepLevel, step: str, message: str) -> StepLogEntry:
        """Append a step log entry stamped with the current UTC time."""
        entry = StepLogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            step=step,
            message=message,
        )
        self.logs.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "tenant_id": self.tenant_id,
            "namespace": self.namespace,
            "release_name": self.release_name,
            "tenant_url": self.tenant_url,
            "api_url": self.api_url,
            "admin_username": self.admin_username,
            "admin_password": self.admin_password,
            "resources": self.resources.to_dict() if self.resources else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "error_message": self.error_message,
            "validation_errors": self.validation_errors,
            "logs": [entry.to_dict() for entry in self.logs],
        }
