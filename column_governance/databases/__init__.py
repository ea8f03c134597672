"""Column store adapters for multi-database support."""

from typing import Optional

from .base import ColumnStoreAdapter, InvalidConnectionString
from .oracle import OracleAdapter
from .postgresql import PostgresqlAdapter

_ADAPTERS = {
    "postgres": PostgresqlAdapter,
    "oracle": OracleAdapter,
}


def get_adapter(db_type: str) -> Optional[ColumnStoreAdapter]:
    """Get the column store adapter for the given database type.

    Args:
        db_type: Detected database type (e.g. postgres, oracle).

    Returns:
        ColumnStoreAdapter instance or None if the type has no adapter.
    """
    adapter_cls = _ADAPTERS.get(db_type)
    if adapter_cls is None:
        return None
    return adapter_cls()


__all__ = [
    "ColumnStoreAdapter",
    "InvalidConnectionString",
    "OracleAdapter",
    "PostgresqlAdapter",
    "get_adapter",
]
