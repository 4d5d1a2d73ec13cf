"""PostgreSQL tenant database provisioner using asyncpg."""

from typing import Any
from urllib.parse import quote

import asyncpg

from tenancy_core.exceptions import DatabaseProvisioningError
from tenancy_core.observability import Timer, emit_timer, get_logger

logger = get_logger(__name__)


def quote_ident(name: str) -> str:
    """Quote a SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


class PostgresTenantDatabaseProvisioner:
    """Creates one database per tenant by cloning a template database.

    After the clone, ownership rows that still name the template tenant are
    rewritten to the new tenant, the default admin identity is inserted and
    the template's seed owner is optionally renamed to the real owner.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        user: str = "postgres",
        password: str = "postgres",
        admin_database: str = "postgres",
        template_database: str = "tenant_template",
        template_tenant_name: str = "template",
        database_prefix: str = "tenant_",
        admin_username: str = "admin",
        admin_password_hash: str = "",
        seed_owner_email: str = "owner@example.com",
        **kwargs: Any,
    ) -> None:
        """Initialize the provisioner.

        Args:
            host: Default PostgreSQL host
            port: Default PostgreSQL port
            user: Superuser (or CREATEDB role) name
            password: Password for ``user``
            admin_database: Database to connect to for CREATE/DROP DATABASE
            template_database: Database cloned for every tenant
            template_tenant_name: Tenant name baked into the template rows
            database_prefix: Prefix of tenant database names
            admin_username: Username of the default admin identity
            admin_password_hash: Pre-hashed password of the default admin
            seed_owner_email: Email of the template's seed owner row
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.host = host
        self.port = int(port)
        self.user = user
        self.password = password
        self.admin_database = admin_database
        self.template_database = template_database
        self.template_tenant_name = template_tenant_name
        self.database_prefix = database_prefix
        self.admin_username = admin_username
        self.admin_password_hash = admin_password_hash
        self.seed_owner_email = seed_owner_email

    def database_name(self, tenant_id: str) -> str:
        """Database name for a tenant id."""
        return f"{self.database_prefix}{tenant_id.replace('-', '_')}"

    def connection_string(self, tenant_id: str, host: str, port: int) -> str:
        """libpq URL for the tenant database."""
        return (
            f"postgresql://{quote(self.user, safe='')}:{quote(self.password, safe='')}"
            f"@{host}:{port}/{self.database_name(tenant_id)}"
        )

    async def _connect(self, host: str, port: int, database: str) -> asyncpg.Connection:
        try:
            return await asyncpg.connect(
                host=host,
                port=port,
                user=self.user,
                password=self.password,
                database=database,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise DatabaseProvisioningError(f"Cannot connect to PostgreSQL at {host}:{port}: {e}") from e

    async def exists(self, tenant_id: str, host: str | None = None, port: int | None = None) -> bool:
        """Check pg_database for the tenant database."""
        host, port = host or self.host, port or self.port
        conn = await self._connect(host, port, self.admin_database)
        try:
            found = await conn.fetchval(
                "SELECT 1 FROM pg_database WHERE datname = $1",
                self.database_name(tenant_id),
            )
            return bool(found)
        finally:
            await conn.close()

    async def provision(
        self,
        tenant_id: str,
        host: str | None = None,
        port: int | None = None,
        owner_email: str | None = None,
        owner_name: str | None = None,
    ) -> str:
        """Clone the template into a new tenant database.

        Returns:
            Connection string for the tenant database

        Raises:
            DatabaseProvisioningError: If any SQL step fails
        """
        host, port = host or self.host, port or self.port
        db_name = self.database_name(tenant_id)

        with Timer() as timer:
            conn = await self._connect(host, port, self.admin_database)
            try:
                await conn.execute(
                    f"CREATE DATABASE {quote_ident(db_name)} TEMPLATE {quote_ident(self.template_database)}"
                )
                logger.info("Tenant database created", context={"database": db_name, "host": host})
            except asyncpg.DuplicateDatabaseError:
                logger.warning("Tenant database already exists", context={"database": db_name, "host": host})
            except asyncpg.PostgresError as e:
                raise DatabaseProvisioningError(f"Failed to create database {db_name}: {e}") from e
            finally:
                await conn.close()

            conn = await self._connect(host, port, db_name)
            try:
                async with conn.transaction():
                    await conn.execute(
                        'UPDATE public."user" SET tenantname = $1 WHERE tenantname = $2',
                        tenant_id,
                        self.template_tenant_name,
                    )
                    await conn.execute(
                        'INSERT INTO public."user" (username, password, tenantname, email) '
                        "VALUES ($1, $2, $3, $4) ON CONFLICT DO NOTHING",
                        self.admin_username,
                        self.admin_password_hash,
                        tenant_id,
                        owner_email,
                    )
                    if owner_name:
                        first, _, last = owner_name.strip().partition(" ")
                        await conn.execute(
                            "UPDATE domain.employee SET firstname = $1, lastname = $2, email = $3 "
                            "WHERE email = $4",
                            first,
                            last,
                            owner_email or self.seed_owner_email,
                            self.seed_owner_email,
                        )
            except asyncpg.PostgresError as e:
                raise DatabaseProvisioningError(f"Failed to initialize database {db_name}: {e}") from e
            finally:
                await conn.close()

        emit_timer("tenant_db.provision", timer.duration_ms)
        return self.connection_string(tenant_id, host, port)

    async def delete(self, tenant_id: str, host: str | None = None, port: int | None = None) -> None:
        """Terminate sessions and drop the tenant database."""
        host, port = host or self.host, port or self.port
        db_name = self.database_name(tenant_id)

        conn = await self._connect(host, port, self.admin_database)
        try:
            await conn.execute(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                "WHERE datname = $1 AND pid <> pg_backend_pid()",
                db_name,
            )
            await conn.execute(f"DROP DATABASE IF EXISTS {quote_ident(db_name)}")
            logger.info("Tenant database dropped", context={"database": db_name, "host": host})
        except asyncpg.PostgresError as e:
            raise DatabaseProvisioningError(f"Failed to drop database {db_name}: {e}") from e
        finally:
            await conn.close()
