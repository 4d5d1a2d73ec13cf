"""Domain verification records and results."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

from tenancy_core.tenants.models import format_timestamp, parse_timestamp, utcnow


class VerificationMethod(str, Enum):
    """How domain ownership is proven."""

    DNS = "dns"
    FILE = "file"


class VerificationFailure(str, Enum):
    """Why a verification attempt did not succeed."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    DNS_MISMATCH = "dns_mismatch"
    FILE_MISMATCH = "file_mismatch"


@dataclass
class DomainVerification:
    """Ownership challenge for one (tenant, domain) pair."""

    tenant_id: str
    domain: str
    method: VerificationMethod
    token: str
    expires_at: datetime
    is_verified: bool = False
    verified_at: datetime | None = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def issue(
        cls,
        tenant_id: str,
        domain: str,
        method: VerificationMethod,
        token: str,
        ttl_days: int = 7,
    ) -> "DomainVerification":
        """Create a fresh unverified record expiring after ``ttl_days``."""
        now = utcnow()
        return cls(
            tenant_id=tenant_id,
            domain=domain,
            method=method,
            token=token,
            created_at=now,
            expires_at=now + timedelta(days=ttl_days),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Unverified and past ``expires_at``. Verified records never expire."""
        return not self.is_verified and (now or utcnow()) > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain,
            "tenant_id": self.tenant_id,
            "verification_token": self.token,
            "verification_method": self.method.value,
            "is_verified": self.is_verified,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
            "verified_at": format_timestamp(self.verified_at),
        }

    @classmethod
    def from_row(cls, row: Any) -> "DomainVerification":
        """Create from database row."""
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            domain=row.domain,
            method=VerificationMethod(row.method),
            token=row.token,
            is_verified=bool(row.is_verified),
            created_at=parse_timestamp(row.created_at) or utcnow(),
            expires_at=parse_timestamp(row.expires_at) or utcnow(),
            verified_at=parse_timestamp(row.verified_at),
        )


@dataclass
class DnsCheck:
    """What the TXT lookup saw, for troubleshooting."""

    host: str
    expected_value: str
    record_found: bool = False
    actual_value: str | None = None
    all_records: list[str] = field(default_factory=list)
    detail: str | None = None  # record_not_found | value_mismatch | query_failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "expected_value": self.expected_value,
            "record_found": self.record_found,
            "actual_value": self.actual_value,
            "all_records": self.all_records,
            "detail": self.detail,
        }


@dataclass
class VerificationResult:
    """Outcome of :meth:`DomainService.verify`. Failures never mutate state."""

    domain: str
    success: bool
    reason: VerificationFailure | None = None
    message: str | None = None
    verified_at: datetime | None = None
    dns_check: DnsCheck | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain,
            "success": self.success,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "verified_at": format_timestamp(self.verified_at),
            "dns_check": self.dns_check.to_dict() if self.dns_check else None,
            "warnings": self.warnings,
        }
