"""Tests for tenant id generation and input validation."""

import re

import pytest

from tenancy_core.provisioning.identifiers import generate_tenant_id, slugify, strip_diacritics
from tenancy_core.utils.validation import (
    is_valid_domain,
    is_valid_tenant_id,
    validate_domain,
    validate_email,
    validate_tenant_id,
)

GENERATED_ID_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")

COMPANY_NAMES = [
    "Acme Auto",
    "Café Ünïcode_Shop  Name",
    "  Leading and trailing  ",
    "---Acme---",
    "!!!",
    "",
    "A" * 50,
    "Bob's Garage & Tyres (North)",
    "abcdefghijklmnopqrs tuv",
    "日本自動車",
]


class TestSlugify:
    """Tests for slugify."""

    def test_strip_diacritics(self) -> None:
        assert strip_diacritics("Café Ünïcode") == "Cafe Unicode"

    def test_collapses_separators(self) -> None:
        assert slugify("Acme   Auto__Repair") == "acme-auto-repair"

    def test_truncates_to_twenty(self) -> None:
        assert slugify("Café Ünïcode_Shop  Name") == "cafe-unicode-shop-na"

    def test_no_trailing_hyphen_after_truncation(self) -> None:
        assert slugify("abcdefghijklmnopqrs tuv") == "abcdefghijklmnopqrs"

    def test_strips_invalid_characters(self) -> None:
        assert slugify("Bob's Garage & Tyres") == "bobs-garage-tyres"


class TestGenerateTenantId:
    """Tests for generate_tenant_id."""

    @pytest.mark.parametrize("name", COMPANY_NAMES)
    def test_shape(self, name: str) -> None:
        """Generated ids are lowercase alphanumeric with hyphens and at most 27 characters."""
        tenant_id = generate_tenant_id(name)

        assert GENERATED_ID_RE.match(tenant_id)
        assert len(tenant_id) <= 27
        assert is_valid_tenant_id(tenant_id)

    def test_slug_prefix(self) -> None:
        assert generate_tenant_id("Acme Auto").startswith("acme-auto-")

    def test_unusable_name_falls_back(self) -> None:
        assert generate_tenant_id("!!!").startswith("tenant-")

    def test_random_suffix(self) -> None:
        """Two calls with the same name differ."""
        first = generate_tenant_id("Acme Auto")
        second = generate_tenant_id("Acme Auto")

        assert first != second
        assert len(first.rsplit("-", 1)[1]) == 6


class TestValidation:
    """Tests for validation helpers."""

    @pytest.mark.parametrize("value", ["acme", "acme-auto-1a2b3c", "ab", "0day"])
    def test_valid_tenant_ids(self, value: str) -> None:
        assert is_valid_tenant_id(value)

    @pytest.mark.parametrize("value", ["", "a", "Acme", "-acme", "acme-", "acme_auto", "a" * 64])
    def test_invalid_tenant_ids(self, value: str) -> None:
        assert not is_valid_tenant_id(value)

    def test_max_length(self) -> None:
        assert is_valid_tenant_id("a" * 56, max_length=56)
        assert not is_valid_tenant_id("a" * 57, max_length=56)

    def test_validate_tenant_id_raises(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_tenant_id("")
        with pytest.raises(ValueError, match="Invalid tenant_id"):
            validate_tenant_id("Bad_Id")

    def test_validate_domain_normalizes(self) -> None:
        assert validate_domain("  Shop.Example.COM. ") == "shop.example.com"

    @pytest.mark.parametrize("value", ["localhost", "-bad.example.com", "bad_domain.com", "a..b"])
    def test_invalid_domains(self, value: str) -> None:
        assert not is_valid_domain(value)
        with pytest.raises(ValueError):
            validate_domain(value)

    def test_validate_email(self) -> None:
        assert validate_email(" Owner@Acme.Example ") == "owner@acme.example"
        with pytest.raises(ValueError, match="Invalid email format"):
            validate_email("not-an-email")
