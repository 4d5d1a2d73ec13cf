"""Utility modules."""

from tenancy_core.utils.cancellation import CancellationToken
from tenancy_core.utils.validation import (
    is_valid_domain,
    is_valid_tenant_id,
    validate_domain,
    validate_email,
    validate_tenant_id,
)

__all__ = [
    "CancellationToken",
    "is_valid_domain",
    "is_valid_tenant_id",
    "validate_domain",
    "validate_email",
    "validate_tenant_id",
]
