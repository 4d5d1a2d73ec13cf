"""Tenancy Core exceptions."""


class TenancyError(Exception):
    """Base exception for tenancy-core."""

    pass


class ConfigError(TenancyError):
    """Configuration error."""

    pass


class ValidationError(TenancyError):
    """Request failed validation before any side effect."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class NotFoundError(TenancyError):
    """Resource not found."""

    pass


class TenantNotFoundError(NotFoundError):
    """Tenant not found."""

    pass


class DomainVerificationNotFoundError(NotFoundError):
    """No verification record for the domain."""

    pass


class DomainInUseError(TenancyError):
    """Domain is already bound to a different tenant."""

    pass


class CollaboratorError(TenancyError):
    """An external collaborator call failed."""

    pass


class ClusterError(CollaboratorError):
    """Container orchestration API error."""

    pass


class DatabaseProvisioningError(CollaboratorError):
    """Tenant database administration error."""

    pass


class ProxyError(CollaboratorError):
    """Reverse proxy API error."""

    pass


class DnsError(CollaboratorError):
    """DNS registrar API error."""

    pass


class OperationCancelledError(TenancyError):
    """Operation was cancelled cooperatively."""

    pass
