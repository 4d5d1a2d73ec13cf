"""SQLite database backend for the control-plane store."""

import asyncio
import re
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from tenancy_core.protocols.database import Row

PARAM_RE = re.compile(r"(?<!:):(\w+)")


def _to_positional(query: str, params: dict[str, Any] | None) -> tuple[str, tuple[Any, ...]]:
    """Rewrite ``:name`` placeholders to ``?`` in order of appearance."""
    if not params:
        return query, ()

    names: list[str] = []

    def replace_param(match: re.Match[str]) -> str:
        names.append(match.group(1))
        return "?"

    query = PARAM_RE.sub(replace_param, query)
    return query, tuple(params[name] for name in names)


class SQLiteDatabase:
    """SQLite database backend.

    Suitable for a single control-plane replica. Calls are serialized through
    an asyncio lock around one shared sqlite3 connection. A transaction holds
    the lock until it ends, so other tasks wait instead of joining it.
    """

    def __init__(
        self,
        path: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize SQLite database.

        Args:
            path: Path to SQLite database file. Defaults to ./data/tenancy.db
                  Use ":memory:" for in-memory database.
            **kwargs: Ignored (for compatibility with other backends)
        """
        if path == ":memory:":
            self.path: Path | str = ":memory:"
        else:
            self.path = Path(path) if path else Path("./data/tenancy.db")
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        query, values = _to_positional(query, params)
        if self._owns_transaction():
            # The lock is already held by this task's transaction
            return self._run(query, values, commit=False)
        async with self._lock:
            return self._run(query, values, commit=True)

    def _run(self, query: str, values: tuple[Any, ...], commit: bool) -> list[Row]:
        conn = self._get_connection()
        rows = conn.execute(query, values).fetchall()
        if commit:
            conn.commit()
        return [Row(_data=dict(row)) for row in rows]

    async def execute_script(self, script: str) -> None:
        """Execute a multi-statement script."""
        async with self._lock:
            conn = self._get_connection()
            conn.executescript(script)

    def _owns_transaction(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLiteDatabase"]:
        """Start a transaction.

        The connection lock is held until the transaction ends. A nested
        call from the owning task joins the outer transaction; SQLite has
        no nested transactions.
        """
        if self._owns_transaction():
            yield self
            return

        async with self._lock:
            conn = self._get_connection()
            self._owner = asyncio.current_task()
            try:
                yield self
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._owner = None

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
