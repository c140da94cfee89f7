"""
The storage collaborator used by built-in functions.

All operations are async and fail soft: a missing table or key reads as
None rather than raising.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional


class Database(ABC):
    """The required base class for any store handed to the interpreter."""

    @property
    @abstractmethod
    def tables(self) -> list: raise NotImplementedError
    @abstractmethod
    async def get(self, table: str, key: str) -> Any: raise NotImplementedError
    @abstractmethod
    async def set(self, table: str, key: str, value: Any) -> None: raise NotImplementedError
    @abstractmethod
    async def has(self, table: str, key: str) -> bool: raise NotImplementedError
    @abstractmethod
    async def has_table(self, table: str) -> bool: raise NotImplementedError
    @abstractmethod
    async def all(self, table: str) -> Dict[str, Any]: raise NotImplementedError
    @abstractmethod
    async def default_value(self, key: str, table: str) -> Any: raise NotImplementedError

    async def delete(self, table: str, key: str) -> bool:
        return False

    @property
    def default_table(self) -> Optional[str]:
        tables = self.tables
        return tables[0] if tables else None


class MemoryDatabase(Database):
    """Process-local store with declared tables and variable defaults.

    A variable "exists" in a table once it has a default or has been set.
    Concurrent writers race; the last write wins.
    """
    def __init__(self, tables: Iterable[str] = ("main",), variables: Optional[Dict[str, Any]] = None):
        self._tables: Dict[str, Dict[str, Any]] = {name: {} for name in tables}
        self._defaults: Dict[str, Any] = dict(variables or {})

    @property
    def tables(self) -> list:
        return list(self._tables)

    def variables(self, values: Dict[str, Any]) -> None:
        """Declares variable defaults for every table."""
        self._defaults.update(values)

    async def get(self, table: str, key: str) -> Any:
        data = self._tables.get(table)
        if data is None:
            return None
        if key in data:
            return data[key]
        return self._defaults.get(key)

    async def set(self, table: str, key: str, value: Any) -> None:
        data = self._tables.get(table)
        if data is None:
            return
        data[key] = value

    async def has(self, table: str, key: str) -> bool:
        data = self._tables.get(table)
        if data is None:
            return False
        return key in data or key in self._defaults

    async def has_table(self, table: str) -> bool:
        return table in self._tables

    async def all(self, table: str) -> Dict[str, Any]:
        data = self._tables.get(table)
        if data is None:
            return {}
        return {**self._defaults, **data}

    async def default_value(self, key: str, table: str) -> Any:
        if table not in self._tables:
            return None
        return self._defaults.get(key)

    async def delete(self, table: str, key: str) -> bool:
        data = self._tables.get(table)
        if data is None or key not in data:
            return False
        del data[key]
        return True

    def __repr__(self) -> str:
        return f"<MemoryDatabase tables={self.tables!r}>"
