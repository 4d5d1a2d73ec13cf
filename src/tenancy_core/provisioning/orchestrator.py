"""End-to-end tenant provisioning pipeline.

The orchestrator validates a request, renders the chart values, deploys
them and waits for the database, API and web workloads to become ready.
Every step is appended to the result's log. Nothing is rolled back on
failure: partially created infrastructure is left for inspection or an
explicit deprovision.
"""

import asyncio
import time
from dataclasses import replace
from datetime import timedelta

from tenancy_core.config import Config
from tenancy_core.exceptions import OperationCancelledError
from tenancy_core.observability import (
    RequestContext,
    emit_counter,
    emit_timer,
    get_logger,
)
from tenancy_core.protocols import ChartDeployer, ClusterClient, DnsRegistrar, ForwardTarget, ProxyClient
from tenancy_core.provisioning.descriptor import (
    build_values,
    dedicated_connection_string,
    default_domain,
    release_name,
    render_values,
)
from tenancy_core.provisioning.identifiers import generate_tenant_id
from tenancy_core.provisioning.models import ProvisioningRequest, ProvisioningResult, StepLevel
from tenancy_core.provisioning.readiness import (
    API_SELECTOR,
    DATABASE_SELECTOR,
    WEB_SELECTOR,
    ReadinessPoller,
    pods_ready,
)
from tenancy_core.provisioning.tiers import calculate_resources, is_known_tier
from tenancy_core.tenants.models import DeploymentMode, Tenant, TenantStatus, utcnow
from tenancy_core.tenants.store import TenantStore
from tenancy_core.utils.cancellation import CancellationToken
from tenancy_core.utils.validation import MAX_NAMESPACE_LENGTH, is_valid_domain, is_valid_tenant_id, validate_email

logger = get_logger(__name__)


class ProvisioningOrchestrator:
    """Creates and updates dedicated tenant deployments.

    Example:
        orchestrator = ProvisioningOrchestrator(config, cluster, charts, tenants)
        result = await orchestrator.provision(ProvisioningRequest(company_name="Acme Auto", tier="demo"))
        if not result.success:
            print(result.error_message, [entry.to_dict() for entry in result.logs])
    """

    def __init__(
        self,
        config: Config,
        cluster: ClusterClient,
        charts: ChartDeployer,
        tenants: TenantStore,
        proxy: ProxyClient | None = None,
        dns: DnsRegistrar | None = None,
        poller: ReadinessPoller | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Control-plane configuration
            cluster: Cluster API client
            charts: Chart deployment tool
            tenants: Tenant registry
            proxy: Optional reverse proxy, routed after a successful provision
            dns: Optional DNS registrar, records created after a successful provision
            poller: Readiness poller (defaults to the configured poll interval)
        """
        self.config = config
        self.settings = config.provisioning
        self.cluster = cluster
        self.charts = charts
        self.tenants = tenants
        self.proxy = proxy
        self.dns = dns
        self.poller = poller or ReadinessPoller(interval=self.settings.poll_interval_seconds)

    def namespace_for(self, tenant_id: str) -> str:
        return f"{self.settings.namespace_prefix}{tenant_id}"

    async def validate(self, request: ProvisioningRequest, existing: bool = False) -> list[str]:
        """Check a request before any side effect.

        Args:
            request: The request to validate
            existing: True for updates, where the tenant is expected to exist

        Returns:
            Human-readable validation errors (empty when valid)
        """
        errors: list[str] = []

        if not request.company_name.strip():
            errors.append("Company name is required.")

        if request.owner_email:
            try:
                validate_email(request.owner_email)
            except ValueError:
                errors.append("Invalid owner email format.")

        if not is_known_tier(request.tier, self.settings.tiers):
            errors.append(f"Invalid subscription tier: {request.tier}")

        if request.tenant_id is not None:
            max_length = MAX_NAMESPACE_LENGTH - len(self.settings.namespace_prefix)
            if not is_valid_tenant_id(request.tenant_id, max_length):
                errors.append(
                    "Invalid tenant ID format. Must be lowercase, alphanumeric with hyphens, "
                    f"2 to {max_length} characters."
                )
            elif not existing and await self._namespace_exists(self.namespace_for(request.tenant_id)):
                errors.append(f"Tenant with ID '{request.tenant_id}' already exists.")

        if request.custom_domain and not is_valid_domain(request.custom_domain):
            errors.append("Invalid custom domain format.")

        errors.extend(request.overrides.validate())

        if not await self._probe(self.cluster.is_reachable, "cluster"):
            errors.append("Kubernetes cluster is not accessible.")
        if not await self._probe(self.charts.is_available, "charts"):
            errors.append("Helm is not available.")

        return errors

    async def _probe(self, check, name: str) -> bool:
        try:
            return bool(await check())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Availability probe failed", context={"collaborator": name}, error=e)
            return False

    async def _namespace_exists(self, namespace: str) -> bool:
        try:
            return await self.cluster.namespace_exists(namespace)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # An unreachable cluster is reported by the reachability probe
            logger.warning("Namespace check failed", context={"namespace": namespace}, error=e)
            return False

    def _log(self, result: ProvisioningResult, level: StepLevel, step: str, message: str) -> None:
        result.add_log(level, step, message)
        context = {"step": step, "tenant_id": result.tenant_id}
        if level == StepLevel.ERROR:
            logger.error(message, context=context)
        elif level == StepLevel.WARNING:
            logger.warning(message, context=context)
        else:
            logger.info(message, context=context)

    def _fail(self, result: ProvisioningResult, step: str, message: str) -> ProvisioningResult:
        result.success = False
        result.error_message = message
        self._log(result, StepLevel.ERROR, step, message)
        return result

    async def provision(
        self,
        request: ProvisioningRequest,
        cancellation: CancellationToken | None = None,
    ) -> ProvisioningResult:
        """Provision a new dedicated tenant.

        Args:
            request: What to provision
            cancellation: Optional token checked between steps

        Returns:
            The result, including the full step log on failure
        """
        result = ProvisioningResult(
            stripe_customer_id=request.stripe_customer_id,
            stripe_subscription_id=request.stripe_subscription_id,
        )
        started = time.monotonic()
        emit_counter("provisioning.started", {"tier": request.tier})

        async with RequestContext(tenant_id=request.tenant_id, operation="provision"):
            step = "ValidateRequest"
            try:
                errors = await self.validate(request)
                if errors:
                    result.validation_errors = errors
                    self._fail(result, step, "Validation failed: " + "; ".join(errors))
                    return self._finish(result, started)
                self._log(result, StepLevel.INFO, step, "Request validated")
                self._check(cancellation)

                step = "GenerateTenantId"
                tenant_id = request.tenant_id or generate_tenant_id(request.company_name)
                namespace = self.namespace_for(tenant_id)
                release = release_name(tenant_id)
                result.tenant_id = tenant_id
                result.namespace = namespace
                result.release_name = release
                self._log(result, StepLevel.INFO, step, f"Tenant ID: {tenant_id}")

                if request.tenant_id is None:
                    step = "CheckNamespace"
                    if await self.cluster.namespace_exists(namespace):
                        return self._finish(
                            self._fail(result, step, f"Namespace {namespace} already exists"), started
                        )

                step = "BuildHelmValues"
                resources = calculate_resources(
                    request.tier,
                    request.overrides,
                    self.settings.tiers,
                    self.settings.storage_class,
                )
                result.resources = resources
                values = render_values(build_values(request, tenant_id, resources, self.settings))
                self._log(result, StepLevel.INFO, step, f"Helm values generated for tier {resources.tier}")
                self._check(cancellation)

                step = "DeployHelm"
                self._log(result, StepLevel.INFO, step, f"Deploying release {release} to namespace {namespace}")
                chart_result = await self.charts.install(
                    release,
                    self.settings.chart_path,
                    namespace,
                    values,
                    self.settings.provisioning_timeout_seconds,
                )
                if not chart_result.success:
                    return self._finish(
                        self._fail(result, step, f"Helm deployment failed: {chart_result.error}"), started
                    )
                self._log(result, StepLevel.INFO, step, "Helm chart deployed successfully")
                self._check(cancellation)

                step = "WaitForDatabase"
                self._log(result, StepLevel.INFO, step, "Waiting for database cluster to be ready")
                if not await self.poller.wait_until(
                    pods_ready(self.cluster, namespace, DATABASE_SELECTOR),
                    self.settings.database_ready_timeout_seconds,
                    "database",
                    cancellation,
                ):
                    return self._finish(
                        self._fail(
                            result,
                            step,
                            f"Database did not become ready within {self.settings.database_ready_timeout_seconds} seconds",
                        ),
                        started,
                    )
                self._log(result, StepLevel.INFO, step, "Database cluster is ready")

                step = "WaitForAPI"
                self._log(result, StepLevel.INFO, step, "Waiting for API pods to be ready")
                if not await self.poller.wait_until(
                    pods_ready(self.cluster, namespace, API_SELECTOR),
                    self.settings.pod_ready_timeout_seconds,
                    "api",
                    cancellation,
                ):
                    return self._finish(
                        self._fail(
                            result,
                            step,
                            f"API pods did not become ready within {self.settings.pod_ready_timeout_seconds} seconds",
                        ),
                        started,
                    )
                self._log(result, StepLevel.INFO, step, "API pods are ready")

                step = "WaitForWeb"
                self._log(result, StepLevel.INFO, step, "Waiting for web pods to be ready")
                if await self.poller.wait_until(
                    pods_ready(self.cluster, namespace, WEB_SELECTOR),
                    self.settings.pod_ready_timeout_seconds,
                    "web",
                    cancellation,
                ):
                    self._log(result, StepLevel.INFO, step, "Web pods are ready")
                else:
                    self._log(
                        result,
                        StepLevel.WARNING,
                        step,
                        "Web pods did not become ready in time; continuing",
                    )

                step = "Finalize"
                domain = request.custom_domain or default_domain(tenant_id, self.settings.base_domain)
                result.tenant_url = f"https://{domain}"
                result.api_url = f"https://{domain}/api"
                result.admin_username = self.settings.default_admin.username
                result.admin_password = self.settings.default_admin.password
                if resources.tier == "demo" and resources.expiration_days:
                    result.expires_at = utcnow() + timedelta(days=resources.expiration_days)

                step = "RegisterTenant"
                await self._register(request, result)
                self._log(result, StepLevel.INFO, step, "Tenant record saved")

                step = "ConfigureRouting"
                await self._configure_routing(result)

                result.success = True
                self._log(result, StepLevel.INFO, "Complete", "Tenant provisioned successfully")
            except OperationCancelledError as e:
                self._fail(result, "Cancelled", str(e))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Provisioning step raised", context={"step": step}, error=e)
                self._fail(result, step, f"Provisioning failed: {e}")

        return self._finish(result, started)

    async def update(
        self,
        tenant_id: str,
        request: ProvisioningRequest,
        cancellation: CancellationToken | None = None,
    ) -> ProvisioningResult:
        """Re-render and upgrade an existing tenant's release.

        Readiness waits are skipped; the upgrade itself waits for the
        rollout through the chart tool.
        """
        result = ProvisioningResult(
            tenant_id=tenant_id,
            namespace=self.namespace_for(tenant_id),
            release_name=release_name(tenant_id),
            stripe_customer_id=request.stripe_customer_id,
            stripe_subscription_id=request.stripe_subscription_id,
        )
        started = time.monotonic()
        namespace = result.namespace
        release = result.release_name

        async with RequestContext(tenant_id=tenant_id, operation="update"):
            step = "ValidateRequest"
            try:
                request = replace(request, tenant_id=tenant_id)
                errors = await self.validate(request, existing=True)
                if errors:
                    result.validation_errors = errors
                    self._fail(result, step, "Validation failed: " + "; ".join(errors))
                    return self._finish(result, started, operation="update")
                self._log(result, StepLevel.INFO, step, "Request validated")

                step = "CheckNamespace"
                if not await self.cluster.namespace_exists(namespace):
                    return self._finish(
                        self._fail(result, step, f"Tenant namespace {namespace} does not exist"),
                        started,
                        operation="update",
                    )
                self._check(cancellation)

                step = "BuildHelmValues"
                resources = calculate_resources(
                    request.tier,
                    request.overrides,
                    self.settings.tiers,
                    self.settings.storage_class,
                )
                result.resources = resources
                values = render_values(build_values(request, tenant_id, resources, self.settings))
                self._log(result, StepLevel.INFO, step, f"Helm values generated for tier {resources.tier}")
                self._check(cancellation)

                step = "UpgradeHelm"
                chart_result = await self.charts.upgrade(
                    release,
                    self.settings.chart_path,
                    namespace,
                    values,
                    self.settings.provisioning_timeout_seconds,
                )
                if not chart_result.success:
                    return self._finish(
                        self._fail(result, step, f"Helm upgrade failed: {chart_result.error}"),
                        started,
                        operation="update",
                    )
                self._log(result, StepLevel.INFO, step, "Helm release upgraded successfully")

                domain = request.custom_domain or default_domain(tenant_id, self.settings.base_domain)
                result.tenant_url = f"https://{domain}"
                result.api_url = f"https://{domain}/api"

                tenant = await self.tenants.get(tenant_id)
                if tenant is not None:
                    tenant.tier = resources.tier
                    tenant.company_name = request.company_name or tenant.company_name
                    await self.tenants.update(tenant)

                result.success = True
                self._log(result, StepLevel.INFO, "Complete", "Tenant updated successfully")
            except OperationCancelledError as e:
                self._fail(result, "Cancelled", str(e))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Update step raised", context={"step": step}, error=e)
                self._fail(result, step, f"Update failed: {e}")

        return self._finish(result, started, operation="update")

    async def deprovision(self, tenant_id: str) -> ProvisioningResult:
        """Tear down a dedicated deployment.

        Uninstalls the release (a failure there is only a warning), deletes
        the namespace and removes the proxy host and DNS record. The tenant
        record is left alone; see :meth:`TenantLifecycleService.delete_tenant`.
        """
        namespace = self.namespace_for(tenant_id)
        release = release_name(tenant_id)
        result = ProvisioningResult(tenant_id=tenant_id, namespace=namespace, release_name=release)
        started = time.monotonic()

        async with RequestContext(tenant_id=tenant_id, operation="deprovision"):
            step = "UninstallHelm"
            try:
                self._log(result, StepLevel.INFO, step, f"Uninstalling release {release}")
                chart_result = await self.charts.uninstall(release, namespace)
                if chart_result.success:
                    self._log(result, StepLevel.INFO, step, "Helm release uninstalled")
                else:
                    self._log(result, StepLevel.WARNING, step, f"Helm uninstall failed: {chart_result.error}")

                step = "DeleteNamespace"
                if await self.cluster.delete_namespace(namespace):
                    self._log(result, StepLevel.INFO, step, f"Namespace {namespace} deleted")
                else:
                    self._log(result, StepLevel.WARNING, step, f"Namespace {namespace} did not exist")

                step = "RemoveRouting"
                if self.proxy is not None:
                    await self.proxy.delete_tenant_host(tenant_id)
                if self.dns is not None:
                    await self.dns.delete_record(tenant_id)

                result.success = True
                self._log(result, StepLevel.INFO, "Complete", "Tenant deprovisioned successfully")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Deprovision step raised", context={"step": step}, error=e)
                self._fail(result, step, f"Deprovisioning failed: {e}")

        return self._finish(result, started, operation="deprovision")

    def _check(self, cancellation: CancellationToken | None) -> None:
        if cancellation is not None:
            cancellation.raise_if_cancelled()

    def _finish(
        self,
        result: ProvisioningResult,
        started: float,
        operation: str = "provisioning",
    ) -> ProvisioningResult:
        outcome = "completed" if result.success else "failed"
        emit_counter(f"{operation}.{outcome}")
        emit_timer(f"{operation}.duration", (time.monotonic() - started) * 1000, {"outcome": outcome})
        return result

    async def _register(self, request: ProvisioningRequest, result: ProvisioningResult) -> None:
        """Create the tenant record, or repoint an existing one at the new deployment."""
        assert result.tenant_id is not None and result.namespace is not None
        connection_string = dedicated_connection_string(result.tenant_id, result.namespace)
        tenant = await self.tenants.get(result.tenant_id)
        if tenant is not None:
            tenant.set_deployment(DeploymentMode.DEDICATED, result.namespace, connection_string)
            tenant.tier = request.tier
            await self.tenants.update(tenant)
            return

        await self.tenants.create(Tenant(
            tenant_id=result.tenant_id,
            company_name=request.company_name,
            owner_email=request.owner_email,
            owner_name=request.owner_name,
            tier=request.tier,
            status=TenantStatus.TRIAL if result.expires_at else TenantStatus.ACTIVE,
            deployment_mode=DeploymentMode.DEDICATED,
            namespace=result.namespace,
            db_connection_string=connection_string,
            custom_domain=request.custom_domain,
            stripe_customer_id=request.stripe_customer_id,
            stripe_subscription_id=request.stripe_subscription_id,
            trial_ends_at=result.expires_at,
        ))

    async def _configure_routing(self, result: ProvisioningResult) -> None:
        """Create the proxy host and DNS record. Failures are warnings."""
        assert result.tenant_id is not None
        if self.proxy is not None:
            target = ForwardTarget(
                host=self.config.dedicated_instance.forward_host,
                port=self.config.dedicated_instance.forward_port,
            )
            try:
                await self.proxy.create_tenant_host(result.tenant_id, target)
                self._log(result, StepLevel.INFO, "ConfigureRouting", "Proxy host created")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._log(result, StepLevel.WARNING, "ConfigureRouting", f"Failed to create proxy host: {e}")

        if self.dns is not None:
            try:
                await self.dns.create_record(result.tenant_id)
                self._log(result, StepLevel.INFO, "ConfigureRouting", "DNS record created")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._log(result, StepLevel.WARNING, "ConfigureRouting", f"Failed to create DNS record: {e}")
