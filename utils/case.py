"""
Case conversion and row serialization for API responses.
Uses Pydantic's alias_generators for consistency with schema validation.
"""
from datetime import date, datetime
from typing import Any, Iterable

from pydantic.alias_generators import to_camel
from sqlalchemy import inspect

# Bookkeeping columns never exposed to clients
HIDDEN_COLUMNS = frozenset({"is_deleted", "code_hash"})


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_to_camel(row: Any, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Serialize an ORM row's column attributes to a camelCase dict."""
    skip = HIDDEN_COLUMNS.union(exclude)
    mapper = inspect(row).mapper
    return {
        to_camel_key(attr.key): _json_value(getattr(row, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in skip
    }


def rows_to_camel(rows: Iterable[Any], exclude: Iterable[str] = ()) -> list[dict[str, Any]]:
    return [row_to_camel(r, exclude) for r in rows]
