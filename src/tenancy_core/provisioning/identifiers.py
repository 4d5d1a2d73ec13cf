"""Tenant identifier derivation."""

import re
import secrets
import unicodedata

MAX_SLUG_LENGTH = 20
SUFFIX_LENGTH = 6

_SEPARATORS_RE = re.compile(r"[\s_]+")
_INVALID_RE = re.compile(r"[^a-z0-9-]")
_HYPHENS_RE = re.compile(r"-+")


def strip_diacritics(text: str) -> str:
    """Remove combining marks after NFD decomposition (``é`` -> ``e``)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def slugify(name: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Lowercase, hyphen-separated slug of at most ``max_length`` characters."""
    slug = strip_diacritics(name.lower())
    slug = _SEPARATORS_RE.sub("-", slug)
    slug = _INVALID_RE.sub("", slug)
    slug = _HYPHENS_RE.sub("-", slug).strip("-")
    return slug[:max_length].rstrip("-")


def generate_tenant_id(company_name: str) -> str:
    """Derive a unique tenant id from a company name.

    ``"Acme Auto"`` becomes ``"acme-auto-3f9a1c"``. The random hex suffix
    makes two calls with the same name yield different ids. A name with no
    usable characters yields ``"tenant-<suffix>"``.
    """
    slug = slugify(company_name) or "tenant"
    return f"{slug}-{secrets.token_hex(SUFFIX_LENGTH // 2)}"
