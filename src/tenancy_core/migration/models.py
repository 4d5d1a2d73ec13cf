"""Migration result types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from tenancy_core.tenants.models import format_timestamp, utcnow


class DetectedMode(str, Enum):
    """Deployment mode detected by probing the cluster and the shared database server."""

    DEDICATED = "dedicated"
    SHARED = "shared"
    MIXED = "mixed"
    NONE = "none"


@dataclass
class MigrationEligibility:
    """Whether a tenant can be moved, and from where."""

    tenant_id: str
    current_mode: DetectedMode
    can_migrate: bool
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def detect(cls, tenant_id: str, has_namespace: bool, has_shared_db: bool) -> "MigrationEligibility":
        """Classify probe results. Resources in both modes always need a human."""
        if has_namespace and not has_shared_db:
            return cls(
                tenant_id=tenant_id,
                current_mode=DetectedMode.DEDICATED,
                can_migrate=True,
                warnings=["Data migration is not automatic - tenant will start with fresh database from template"],
            )
        if has_shared_db and not has_namespace:
            return cls(tenant_id=tenant_id, current_mode=DetectedMode.SHARED, can_migrate=True)
        if has_namespace and has_shared_db:
            return cls(
                tenant_id=tenant_id,
                current_mode=DetectedMode.MIXED,
                can_migrate=False,
                reason="Tenant exists in both dedicated and shared modes - manual cleanup required",
            )
        return cls(
            tenant_id=tenant_id,
            current_mode=DetectedMode.NONE,
            can_migrate=False,
            reason="Tenant does not exist in either mode",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tenant_id": self.tenant_id,
            "current_mode": self.current_mode.value,
            "can_migrate": self.can_migrate,
            "reason": self.reason,
            "warnings": self.warnings,
        }


@dataclass
class MigrationResult:
    """Outcome of one tenant migration.

    ``steps`` records how far the migration got; completed steps are not
    undone when a later one fails.
    """

    tenant_id: str
    source_mode: str | None = None
    target_mode: str | None = None
    success: bool = False
    error_message: str | None = None
    steps: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def complete(self, success: bool, error_message: str | None = None) -> "MigrationResult":
        self.success = success
        self.error_message = error_message
        self.completed_at = utcnow()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tenant_id": self.tenant_id,
            "success": self.success,
            "source_mode": self.source_mode,
            "target_mode": self.target_mode,
            "started_at": format_timestamp(self.started_at),
            "completed_at": format_timestamp(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "steps": self.steps,
            "warnings": self.warnings,
            "error_message": self.error_message,
        }


@dataclass
class BulkMigrationResult:
    """Aggregate of a sequential bulk migration."""

    total_requested: int
    results: list[MigrationResult] = field(default_factory=list)
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def add(self, result: MigrationResult) -> None:
        self.results.append(result)
        if result.success:
            self.successful += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requested": self.total_requested,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "started_at": format_timestamp(self.started_at),
            "completed_at": format_timestamp(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "results": [result.to_dict() for result in self.results],
        }
