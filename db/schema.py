"""
db/schema.py
------------
Schema introspection: answers "what Python type does this field hold?" so raw
row values can be coerced before key comparison.

Two sources are available:
    ModelSchema    the types a Record subclass declares in ``__fields__``.
    CatalogSchema  the column types PostgreSQL reports in information_schema.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

import psycopg2

from db.connection import pooled_connection
from errors import QueryError, UnknownFieldError
from utils.logger import get_logger

logger = get_logger(__name__)

# information_schema.columns.data_type -> Python type. Types not listed here
# (arrays, json, bytea, intervals, enums) come back from psycopg2 already
# adapted and are left to the record's declared type.
PG_TYPES: dict[str, type] = {
    "smallint": int,
    "integer": int,
    "bigint": int,
    "numeric": Decimal,
    "real": float,
    "double precision": float,
    "boolean": bool,
    "text": str,
    "character varying": str,
    "character": str,
    "date": date,
    "time without time zone": time,
    "timestamp without time zone": datetime,
    "timestamp with time zone": datetime,
    "uuid": UUID,
}


def _split_table(table: str) -> tuple[str, str]:
    """Split 'schema.table' into its parts; bare names live in 'public'."""
    schema, _, name = table.rpartition(".")
    return (schema or "public", name)


class ModelSchema:
    """Field types taken from the record class itself."""

    def field_type(self, record_cls, field_name: str) -> type:
        try:
            return record_cls.__fields__[field_name]
        except KeyError:
            raise UnknownFieldError(record_cls.__name__, field_name) from None


class CatalogSchema:
    """
    Field types read from the database catalog.

    Each table is looked up once per instance; the column map is cached for
    the lifetime of the object.
    """

    SQL = """
        SELECT column_name, data_type
        FROM information_schema.columns
        WHERE table_schema = %s AND table_name = %s
        ORDER BY ordinal_position;
    """

    def __init__(self):
        self._columns: dict[str, dict[str, Optional[type]]] = {}

    def columns(self, record_cls) -> dict[str, Optional[type]]:
        """
        Return {column_name: python_type or None} for the record's table.

        Raises:
            QueryError: If the catalog query fails.
        """
        table = record_cls.__table__
        if table in self._columns:
            return self._columns[table]

        with pooled_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(self.SQL, _split_table(table))
                    rows = cur.fetchall()
            except psycopg2.Error as e:
                conn.rollback()
                logger.error(f"Failed to read catalog for '{table}': {e}")
                raise QueryError(table, str(e)) from e

        columns = {name: PG_TYPES.get(data_type) for name, data_type in rows}
        if not columns:
            logger.warning(f"Catalog lists no columns for table '{table}'")
        self._columns[table] = columns
        return columns

    def field_type(self, record_cls, field_name: str) -> Optional[type]:
        """Catalog type of the column, or None when the catalog type is unmapped."""
        columns = self.columns(record_cls)
        if field_name not in columns:
            raise UnknownFieldError(record_cls.__table__, field_name)
        return columns[field_name]
