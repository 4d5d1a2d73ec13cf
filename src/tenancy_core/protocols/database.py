"""Database protocol for the control-plane SQL store."""

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class Row:
    """Type-safe row access with attribute-style access."""

    _data: dict[str, Any] = field(repr=False)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"Row has no column '{name}'") from None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Return a column value, or ``default`` when absent."""
        return self._data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert row to dictionary."""
        return dict(self._data)


class Database(Protocol):
    """Protocol for the SQL database holding tenant and domain records."""

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        ...

    async def execute_script(self, script: str) -> None:
        """Execute several statements, used for schema creation."""
        ...

    def transaction(self) -> AbstractAsyncContextManager["Database"]:
        """Start a transaction. Commits on exit, rolls back on exception."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...
