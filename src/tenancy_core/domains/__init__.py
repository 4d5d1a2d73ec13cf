"""Custom domain verification."""

from tenancy_core.domains.models import (
    DnsCheck,
    DomainVerification,
    VerificationFailure,
    VerificationMethod,
    VerificationResult,
)
from tenancy_core.domains.service import DomainService, generate_verification_token, merge_ingress_host
from tenancy_core.domains.store import DomainVerificationStore

__all__ = [
    "DnsCheck",
    "DomainService",
    "DomainVerification",
    "DomainVerificationStore",
    "VerificationFailure",
    "VerificationMethod",
    "VerificationResult",
    "generate_verification_token",
    "merge_ingress_host",
]
