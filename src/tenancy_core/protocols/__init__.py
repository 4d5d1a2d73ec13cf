"""Protocol interfaces for pluggable backends."""

from tenancy_core.protocols.charts import ChartDeployer, ChartResult
from tenancy_core.protocols.cluster import (
    ClusterClient,
    Ingress,
    IngressRule,
    IngressTls,
    PodStatus,
)
from tenancy_core.protocols.database import Database, Row
from tenancy_core.protocols.dns import DnsRegistrar
from tenancy_core.protocols.proxy import ForwardTarget, ProxyClient
from tenancy_core.protocols.resolver import Resolver, ResolverError
from tenancy_core.protocols.tenant_db import TenantDatabaseProvisioner

__all__ = [
    "ChartDeployer",
    "ChartResult",
    "ClusterClient",
    "Database",
    "DnsRegistrar",
    "ForwardTarget",
    "Ingress",
    "IngressRule",
    "IngressTls",
    "PodStatus",
    "ProxyClient",
    "Resolver",
    "ResolverError",
    "Row",
    "TenantDatabaseProvisioner",
]
