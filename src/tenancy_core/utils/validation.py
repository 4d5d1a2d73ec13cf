"""Input validation utilities."""

import re

# Lowercase alphanumerics and hyphens, at least two characters, no leading or trailing hyphen
TENANT_ID_RE = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

# Dot-separated DNS labels
DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*$")

# Email pattern (simplified, RFC 5322 compliant for most cases)
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# Kubernetes namespace names are DNS labels
MAX_NAMESPACE_LENGTH = 63
MAX_TENANT_ID_LENGTH = MAX_NAMESPACE_LENGTH
MAX_DOMAIN_LENGTH = 253


def is_valid_tenant_id(value: str | None, max_length: int = MAX_TENANT_ID_LENGTH) -> bool:
    """Check a tenant id is usable as a namespace suffix and subdomain label.

    Pass ``max_length`` to leave room for a namespace prefix.
    """
    return bool(value) and len(value) <= max_length and bool(TENANT_ID_RE.match(value))


def normalize_domain(domain: str) -> str:
    """Lowercase and strip surrounding whitespace and a trailing dot."""
    return domain.strip().lower().rstrip(".")


def is_valid_domain(value: str | None) -> bool:
    """Check domain syntax (after normalization)."""
    if not value:
        return False
    value = normalize_domain(value)
    return len(value) <= MAX_DOMAIN_LENGTH and "." in value and bool(DOMAIN_RE.match(value))


def validate_tenant_id(value: str, name: str = "tenant_id") -> str:
    """Validate a tenant id.

    Args:
        value: The identifier to validate
        name: Name of the field for error messages

    Returns:
        The validated identifier

    Raises:
        ValueError: If the identifier is invalid
    """
    if not value:
        raise ValueError(f"{name} cannot be empty")
    if not is_valid_tenant_id(value):
        raise ValueError(f"Invalid {name}: must be lowercase, alphanumeric with hyphens")
    return value


def validate_domain(domain: str) -> str:
    """Validate and normalize a custom domain.

    Raises:
        ValueError: If the domain is invalid
    """
    if not domain:
        raise ValueError("Domain cannot be empty")
    normalized = normalize_domain(domain)
    if not is_valid_domain(normalized):
        raise ValueError("Invalid custom domain format.")
    return normalized


def validate_email(email: str) -> str:
    """Validate an email address.

    Returns:
        The normalized (lowercased) email

    Raises:
        ValueError: If the email is invalid
    """
    if not email:
        raise ValueError("Email cannot be empty")

    email = email.strip().lower()

    if len(email) > 254:
        raise ValueError("Email exceeds maximum length")

    if not EMAIL_RE.match(email):
        raise ValueError("Invalid email format")

    return email
