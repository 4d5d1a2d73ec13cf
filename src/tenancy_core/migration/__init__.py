"""Shared/dedicated deployment mode migration."""

from tenancy_core.migration.models import (
    BulkMigrationResult,
    DetectedMode,
    MigrationEligibility,
    MigrationResult,
)
from tenancy_core.migration.orchestrator import MigrationOrchestrator

__all__ = [
    "BulkMigrationResult",
    "DetectedMode",
    "MigrationEligibility",
    "MigrationOrchestrator",
    "MigrationResult",
]
