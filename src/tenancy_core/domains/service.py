"""Custom domain verification.

A tenant proves control of a domain by publishing a random token, either
as a TXT record at ``_<product>-verify.<domain>`` or as a file served at
``https://<domain>/.well-known/<product>-verification.txt``. A successful
check binds the domain to the tenant, adds it to the tenant's ingress with
TLS and routes it through the reverse proxy. Failed checks never change
stored state, so they can be retried freely until the record expires.
"""

import asyncio
import secrets
import string
from dataclasses import replace
from typing import Any

from tenancy_core.config import Config
from tenancy_core.domains.models import (
    DnsCheck,
    DomainVerification,
    VerificationFailure,
    VerificationMethod,
    VerificationResult,
)
from tenancy_core.domains.store import DomainVerificationStore
from tenancy_core.exceptions import (
    DomainInUseError,
    DomainVerificationNotFoundError,
    TenantNotFoundError,
)
from tenancy_core.observability import RequestContext, emit_counter, get_logger
from tenancy_core.protocols import ClusterClient, Ingress, IngressRule, IngressTls, ProxyClient, Resolver, ResolverError
from tenancy_core.tenants.models import DeploymentMode, Tenant, utcnow
from tenancy_core.tenants.store import TenantStore
from tenancy_core.utils.validation import validate_domain

logger = get_logger(__name__)

TOKEN_LENGTH = 32
TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_verification_token(length: int = TOKEN_LENGTH) -> str:
    """Cryptographically random alphanumeric token."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def tls_secret_name(host: str) -> str:
    return f"{host.replace('.', '-')}-tls"


def merge_ingress_host(ingress: Ingress, host: str, cluster_issuer: str) -> Ingress:
    """Return a copy of ``ingress`` routing ``host`` as well, with TLS for every host.

    Every rule reuses the backend spec of the first existing rule, and each
    host gets its own certificate secret issued by ``cluster_issuer``.
    """
    hosts = list(ingress.hosts)
    if host not in hosts:
        hosts.append(host)

    http: dict[str, Any] = ingress.rules[0].http if ingress.rules else {}
    annotations = dict(ingress.annotations)
    annotations["cert-manager.io/cluster-issuer"] = cluster_issuer
    annotations["acme.cert-manager.io/http01-edit-in-place"] = "true"

    return replace(
        ingress,
        rules=[IngressRule(host=h, http=http) for h in hosts],
        tls=[IngressTls(hosts=[h], secret_name=tls_secret_name(h)) for h in hosts],
        annotations=annotations,
    )


class DomainService:
    """Issues and checks domain verification challenges."""

    def __init__(
        self,
        config: Config,
        tenants: TenantStore,
        verifications: DomainVerificationStore,
        resolver: Resolver,
        cluster: ClusterClient,
        proxy: ProxyClient | None = None,
    ) -> None:
        """Initialize domain service.

        Args:
            config: Control-plane configuration
            tenants: Tenant registry
            verifications: Verification record store
            resolver: Outbound TXT lookups and HTTPS fetches
            cluster: Cluster client used to update tenant ingresses
            proxy: Optional reverse proxy for custom domain hosts
        """
        self.config = config
        self.product = config.domains.product
        self.tenants = tenants
        self.verifications = verifications
        self.resolver = resolver
        self.cluster = cluster
        self.proxy = proxy

    def verification_host(self, domain: str) -> str:
        return f"_{self.product}-verify.{domain}"

    def verification_url(self, domain: str) -> str:
        return f"https://{domain}/.well-known/{self.product}-verification.txt"

    async def initiate(
        self,
        tenant_id: str,
        domain: str,
        method: VerificationMethod | str = VerificationMethod.DNS,
    ) -> DomainVerification:
        """Start verifying ``domain`` for a tenant.

        Re-initiating for the same tenant issues a fresh token. A record held
        by another tenant blocks the domain unless it expired unverified.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            DomainInUseError: If another tenant owns or is verifying the domain
            ValueError: If the domain or method is invalid
        """
        domain = validate_domain(domain)
        method = VerificationMethod(method)

        async with RequestContext(tenant_id=tenant_id, operation="domain.initiate"):
            tenant = await self.tenants.get(tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant not found: {tenant_id}")

            owner = await self.tenants.get_by_custom_domain(domain)
            if owner is not None and owner.tenant_id != tenant_id:
                raise DomainInUseError(f"Domain {domain} is already in use by another tenant")

            existing = await self.verifications.get_by_domain(domain)
            if existing is not None:
                if existing.tenant_id != tenant_id and not existing.is_expired():
                    raise DomainInUseError(f"Domain {domain} is already in use by another tenant")
                await self.verifications.delete(domain)

            record = DomainVerification.issue(
                tenant_id=tenant_id,
                domain=domain,
                method=method,
                token=generate_verification_token(),
                ttl_days=self.config.domains.verification_ttl_days,
            )
            await self.verifications.create(record)

            logger.info("Initiated domain verification", context={"domain": domain, "method": method.value})
            emit_counter("domain.initiated", {"method": method.value})
            return record

    async def verify(self, domain: str) -> VerificationResult:
        """Check the challenge for ``domain`` and bind it on success."""
        domain = domain.strip().lower().rstrip(".")
        record = await self.verifications.get_by_domain(domain)
        if record is None:
            return VerificationResult(
                domain=domain,
                success=False,
                reason=VerificationFailure.NOT_FOUND,
                message="Domain verification record not found",
            )

        async with RequestContext(tenant_id=record.tenant_id, operation="domain.verify"):
            if record.is_verified:
                return VerificationResult(domain=domain, success=True, verified_at=record.verified_at)

            if record.is_expired():
                logger.warning("Domain verification expired", context={"domain": domain})
                return VerificationResult(
                    domain=domain,
                    success=False,
                    reason=VerificationFailure.EXPIRED,
                    message="Verification token has expired. Please remove this domain and add it again.",
                )

            if record.method == VerificationMethod.FILE:
                result = await self._check_file(record)
            else:
                result = await self._check_dns(record)
            if not result.success:
                emit_counter("domain.verification_failed", {"reason": result.reason.value if result.reason else None})
                return result

            record.is_verified = True
            record.verified_at = utcnow()
            result.verified_at = record.verified_at

            tenant = await self.tenants.get(record.tenant_id)
            # Record and tenant binding commit together
            async with self.verifications.db.transaction():
                await self.verifications.mark_verified(record)
                if tenant is not None:
                    tenant.custom_domain = domain
                    tenant.domain_verified = True
                    await self.tenants.update(tenant)
            if tenant is not None:
                await self._route(tenant, domain, result)

            logger.info("Domain verified", context={"domain": domain})
            emit_counter("domain.verified", {"method": record.method.value})
            return result

    async def _check_dns(self, record: DomainVerification) -> VerificationResult:
        host = self.verification_host(record.domain)
        check = DnsCheck(host=host, expected_value=record.token)
        accepted = {record.token, f"{self.product}-verification={record.token}"}

        try:
            values = await self.resolver.lookup_txt(host)
        except ResolverError as e:
            logger.warning("DNS query failed", context={"host": host}, error=e)
            check.detail = "query_failed"
            return VerificationResult(
                domain=record.domain,
                success=False,
                reason=VerificationFailure.DNS_MISMATCH,
                message=f"DNS lookup failed: {e}. The record may not have propagated yet.",
                dns_check=check,
            )

        check.all_records = values
        check.record_found = bool(values)
        if not values:
            check.detail = "record_not_found"
            return VerificationResult(
                domain=record.domain,
                success=False,
                reason=VerificationFailure.DNS_MISMATCH,
                message=f"No TXT record found at {host}. Add the TXT record and wait for DNS propagation.",
                dns_check=check,
            )

        for value in values:
            if value in accepted:
                check.actual_value = value
                return VerificationResult(domain=record.domain, success=True, dns_check=check)

        check.actual_value = values[0]
        check.detail = "value_mismatch"
        return VerificationResult(
            domain=record.domain,
            success=False,
            reason=VerificationFailure.DNS_MISMATCH,
            message=f"TXT record found but the value doesn't match. Expected: {record.token}, Found: {values[0]}",
            dns_check=check,
        )

    async def _check_file(self, record: DomainVerification) -> VerificationResult:
        url = self.verification_url(record.domain)
        body = await self.resolver.fetch_text(url, self.config.domains.file_check_timeout_seconds)
        if body is not None and body.strip() == record.token:
            return VerificationResult(domain=record.domain, success=True)
        return VerificationResult(
            domain=record.domain,
            success=False,
            reason=VerificationFailure.FILE_MISMATCH,
            message=f"Verification file at {url} is missing or does not contain the token",
        )

    async def _route(self, tenant: Tenant, domain: str, result: VerificationResult) -> None:
        """Add the domain to the tenant ingress and proxy. Failures become warnings."""
        try:
            if not await self.update_ingress(tenant, domain):
                result.warnings.append("No ingress found for tenant; routing not updated")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Failed to update ingress", context={"domain": domain}, error=e)
            result.warnings.append(f"Failed to update ingress: {e}")

        if self.proxy is None:
            return
        try:
            await self.proxy.create_custom_domain_host(tenant.tenant_id, domain)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Failed to create proxy host", context={"domain": domain}, error=e)
            result.warnings.append(f"Failed to create proxy host: {e}")

    async def update_ingress(self, tenant: Tenant, domain: str) -> bool:
        """Merge ``domain`` into the tenant's main ingress.

        Returns:
            False when the tenant has no dedicated ingress to update
        """
        if tenant.deployment_mode != DeploymentMode.DEDICATED or not tenant.namespace:
            return False

        ingresses = await self.cluster.list_ingresses(tenant.namespace)
        if not ingresses:
            logger.warning("No ingress found", context={"namespace": tenant.namespace})
            return False

        ingress = next(
            (
                i for i in ingresses
                if self.product in i.name or "tenant" in i.name or i.name == tenant.tenant_id
            ),
            ingresses[0],
        )
        updated = merge_ingress_host(ingress, domain, self.config.provisioning.cluster_issuer)
        await self.cluster.replace_ingress(updated)
        logger.info("Ingress updated", context={"ingress": ingress.name, "hosts": updated.hosts})
        return True

    async def get(self, domain: str) -> DomainVerification:
        """Get a verification record.

        Raises:
            DomainVerificationNotFoundError: If none exists
        """
        record = await self.verifications.get_by_domain(domain.strip().lower().rstrip("."))
        if record is None:
            raise DomainVerificationNotFoundError(f"No verification record for {domain}")
        return record

    def instructions(self, record: DomainVerification) -> dict[str, Any]:
        """Method-specific hint telling the owner what to publish."""
        if record.method == VerificationMethod.FILE:
            return {
                "type": "HTTP File",
                "path": f"/.well-known/{self.product}-verification.txt",
                "url": self.verification_url(record.domain),
                "content": record.token,
                "description": "Serve a plain text file containing only the token at this path.",
            }
        return {
            "type": "DNS TXT Record",
            "host": self.verification_host(record.domain),
            "value": record.token,
            "alternative_host": f"_{self.product}-verify",
            "description": "Add a TXT record with this host and value, then run verification.",
        }

    async def get_status(self, domain: str) -> dict[str, Any]:
        """Verification record plus instructions."""
        record = await self.get(domain)
        status = record.to_dict()
        status["is_expired"] = record.is_expired()
        status["instructions"] = self.instructions(record)
        return status

    async def list_for_tenant(self, tenant_id: str) -> list[DomainVerification]:
        return await self.verifications.list_for_tenant(tenant_id)

    async def remove(self, domain: str) -> None:
        """Detach a domain from its tenant and drop the verification record.

        Raises:
            DomainVerificationNotFoundError: If no record exists
        """
        record = await self.get(domain)
        async with RequestContext(tenant_id=record.tenant_id, operation="domain.remove"):
            tenant = await self.tenants.get(record.tenant_id)
            bound = tenant is not None and tenant.custom_domain == record.domain
            if bound and self.proxy is not None:
                await self.proxy.delete_custom_domain_host(record.domain)
            async with self.verifications.db.transaction():
                if bound:
                    tenant.custom_domain = None
                    tenant.domain_verified = False
                    await self.tenants.update(tenant)
                await self.verifications.delete(record.domain)
            logger.info("Domain removed", context={"domain": record.domain})
