"""
repositories/record_repo.py
---------------------------
Data access for any Record subclass.
Translates a declarative filter ({field: values}) and an ordering into one
SELECT against the model's table and returns the raw rows.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence

import psycopg2
from psycopg2 import extras, sql

from db.connection import get_connection, release_connection
from errors import QueryError
from models.record import Record
from utils.logger import get_logger

logger = get_logger(__name__)


class RecordRepository:
    """Read-only repository bound to one Record subclass and its table."""

    def __init__(self, model: type[Record]):
        if not model.__table__:
            raise ValueError(f"{model.__name__} does not declare __table__")
        self.model = model
        self.table = model.__table__

    # ── READ ──────────────────────────────────────────────

    def fetch(
        self,
        filters: Mapping[str, Iterable[Any]],
        order_by: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        """
        Fetch rows where every filtered column holds one of its listed values.

        Args:
            filters: Column name -> acceptable values. ``None`` among the
                values matches NULL; an empty collection matches nothing.
            order_by: Columns to sort by, ascending, in priority order.

        Returns:
            Rows as plain dicts keyed by column name.

        Raises:
            QueryError: If PostgreSQL rejects or fails the query.
        """
        query, params = self._build_select(filters, order_by)
        conn = get_connection()
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(r) for r in cur.fetchall()]
            logger.debug(f"Fetched {len(rows)} rows from '{self.table}'")
            return rows
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to fetch rows from '{self.table}': {e}")
            raise QueryError(self.table, str(e)) from e
        finally:
            release_connection(conn)

    def find(
        self,
        filters: Optional[Mapping[str, Iterable[Any]]] = None,
        order_by: Sequence[str] = (),
    ) -> list[Record]:
        """Same query as ``fetch``, returning model instances."""
        return [self.model.from_row(r) for r in self.fetch(filters or {}, order_by)]

    # ── HELPERS ───────────────────────────────────────────

    def _table_identifier(self) -> sql.Identifier:
        return sql.Identifier(*self.table.split("."))

    def _build_select(
        self,
        filters: Mapping[str, Iterable[Any]],
        order_by: Sequence[str],
    ) -> tuple[sql.Composed, list[Any]]:
        """
        Compose the SELECT and its parameters.

        Each column becomes ``(col = ANY(%s) OR col IS NULL)``, with the
        branches present only when needed; columns are ANDed together.
        """
        conditions: list[sql.Composable] = []
        params: list[Any] = []

        for column, values in filters.items():
            values = list(values)
            present = [v for v in values if v is not None]
            branches: list[sql.Composable] = []
            if present:
                branches.append(sql.SQL("{} = ANY(%s)").format(sql.Identifier(column)))
                params.append(present)
            if len(present) < len(values):
                branches.append(sql.SQL("{} IS NULL").format(sql.Identifier(column)))
            if not branches:
                branches.append(sql.SQL("FALSE"))
            conditions.append(sql.SQL("(") + sql.SQL(" OR ").join(branches) + sql.SQL(")"))

        query = sql.SQL("SELECT * FROM {}").format(self._table_identifier())
        if conditions:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)
        if order_by:
            query += sql.SQL(" ORDER BY ") + sql.SQL(", ").join(
                [sql.SQL("{} ASC").format(sql.Identifier(column)) for column in order_by]
            )
        return query, params
