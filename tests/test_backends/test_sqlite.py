"""Tests for SQLite database backend."""

import asyncio

import pytest

from tenancy_core.backends.database.sqlite import SQLiteDatabase, _to_positional


@pytest.fixture
async def db():
    """Create an in-memory SQLite database with a scratch table."""
    database = SQLiteDatabase(path=":memory:")
    await database.execute_script("""
        CREATE TABLE releases (
            id TEXT PRIMARY KEY,
            namespace TEXT NOT NULL,
            chart TEXT UNIQUE
        );
    """)
    yield database
    await database.close()


class TestSQLiteDatabase:
    """Tests for SQLiteDatabase."""

    @pytest.mark.asyncio
    async def test_execute_insert_and_select(self, db):
        """Test inserting and selecting data."""
        await db.execute(
            "INSERT INTO releases (id, namespace, chart) VALUES (:id, :namespace, :chart)",
            {"id": "1", "namespace": "tenant-acme", "chart": "mechanicbuddy-tenant"},
        )

        rows = await db.execute("SELECT * FROM releases WHERE id = :id", {"id": "1"})
        assert len(rows) == 1
        assert rows[0].namespace == "tenant-acme"
        assert rows[0].chart == "mechanicbuddy-tenant"

    @pytest.mark.asyncio
    async def test_row_access(self, db):
        """Rows support attribute, item and get access."""
        await db.execute(
            "INSERT INTO releases (id, namespace, chart) VALUES (:id, :namespace, :chart)",
            {"id": "1", "namespace": "tenant-acme", "chart": None},
        )

        row = (await db.execute("SELECT * FROM releases"))[0]

        assert row.id == "1"
        assert row["namespace"] == "tenant-acme"
        assert "chart" in row
        assert row.get("missing", "default") == "default"
        assert row.to_dict() == {"id": "1", "namespace": "tenant-acme", "chart": None}

    @pytest.mark.asyncio
    async def test_row_missing_attribute(self, db):
        """Test accessing a missing attribute raises AttributeError."""
        await db.execute(
            "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
            {"id": "1", "namespace": "tenant-acme"},
        )

        row = (await db.execute("SELECT * FROM releases"))[0]

        with pytest.raises(AttributeError, match="nonexistent"):
            _ = row.nonexistent

    @pytest.mark.asyncio
    async def test_repeated_parameter(self, db):
        """A named parameter may appear more than once."""
        await db.execute(
            "INSERT INTO releases (id, namespace, chart) VALUES (:id, :id, :chart)",
            {"id": "tenant-acme", "chart": "c"},
        )

        rows = await db.execute("SELECT * FROM releases WHERE id = :id AND namespace = :id", {"id": "tenant-acme"})
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_transaction_commit(self, db):
        """Test transaction commits on success."""
        async with db.transaction():
            await db.execute(
                "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
                {"id": "1", "namespace": "tenant-acme"},
            )

        rows = await db.execute("SELECT * FROM releases")
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, db):
        """Test transaction rolls back on exception."""
        with pytest.raises(ValueError):
            async with db.transaction():
                await db.execute(
                    "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
                    {"id": "1", "namespace": "tenant-acme"},
                )
                raise ValueError("Simulated error")

        rows = await db.execute("SELECT * FROM releases")
        assert len(rows) == 0

    @pytest.mark.asyncio
    async def test_nested_transaction_joins_outer(self, db):
        """A nested transaction in the same task rolls back with the outer one."""
        with pytest.raises(ValueError):
            async with db.transaction():
                async with db.transaction():
                    await db.execute(
                        "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
                        {"id": "1", "namespace": "tenant-acme"},
                    )
                raise ValueError("Simulated error")

        assert await db.execute("SELECT * FROM releases") == []

    @pytest.mark.asyncio
    async def test_concurrent_write_survives_rollback(self, db):
        """Another task's write waits for an open transaction and is not rolled back with it."""
        started = asyncio.Event()

        async def failing_transaction():
            async with db.transaction():
                await db.execute(
                    "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
                    {"id": "inside", "namespace": "tenant-acme"},
                )
                started.set()
                await asyncio.sleep(0.01)
                raise ValueError("Simulated error")

        async def bystander():
            await started.wait()
            await db.execute(
                "INSERT INTO releases (id, namespace) VALUES (:id, :namespace)",
                {"id": "bystander", "namespace": "tenant-globex"},
            )

        results = await asyncio.gather(failing_transaction(), bystander(), return_exceptions=True)

        assert isinstance(results[0], ValueError)
        assert results[1] is None
        rows = await db.execute("SELECT id FROM releases")
        assert [row.id for row in rows] == ["bystander"]

    @pytest.mark.asyncio
    async def test_empty_result(self, db):
        """Test query with no results."""
        rows = await db.execute("SELECT * FROM releases WHERE id = :id", {"id": "999"})
        assert rows == []


class TestToPositional:
    """Tests for named to positional parameter rewriting."""

    def test_order_of_appearance(self):
        query, values = _to_positional("SELECT :b, :a", {"a": 1, "b": 2})
        assert query == "SELECT ?, ?"
        assert values == (2, 1)

    def test_no_params(self):
        assert _to_positional("SELECT 1", None) == ("SELECT 1", ())

    def test_double_colon_left_alone(self):
        query, values = _to_positional("SELECT x::text FROM t WHERE id = :id", {"id": 1})
        assert query == "SELECT x::text FROM t WHERE id = ?"
        assert values == (1,)
