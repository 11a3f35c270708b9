"""
services/sync_service.py
------------------------
Bulk refresh of in-memory records from their table.

``synchronize(posts)`` is like reloading every post individually, but it costs
one query instead of one per post:

    1. collect, per key field, the distinct values held by the records
    2. fetch every row whose key columns fall in those value sets, once
    3. index the rows by their coerced key tuple
    4. walk the records in order; each one whose key tuple is in the index
       takes that row's values (and the row leaves the index)

Records with no matching row (deleted externally, or key changed) are left
exactly as they were. The list itself is never reordered, grown or shrunk.
"""

from typing import Any, Callable, Iterable, Optional, Sequence

from db.schema import ModelSchema
from db.types import coerce
from errors import CoercionError, KeySpecificationError, UnknownFieldError
from models.record import FieldName, Record
from repositories.record_repo import RecordRepository
from utils.logger import get_logger

logger = get_logger(__name__)

KeyTuple = tuple
RowIndex = dict[KeyTuple, dict[str, Any]]


# ── Key extraction ────────────────────────────────────────

def resolve_key_fields(
    record_cls: type[Record], key_fields: Optional[Sequence[str] | str] = None
) -> tuple[FieldName, ...]:
    """
    Validate a key specification against the record class.

    Args:
        record_cls: The class every synchronized record belongs to.
        key_fields: Field names, a single name, or None for the class's
            primary key.

    Raises:
        KeySpecificationError: If the list is empty or repeats a field.
        UnknownFieldError: If a name is not a declared field.
    """
    if key_fields is None:
        key_fields = [record_cls.primary_key]
    elif isinstance(key_fields, str):
        key_fields = [key_fields]

    keys = tuple(record_cls.resolve_field(name) for name in key_fields)
    if not keys:
        raise KeySpecificationError("At least one key field is required")
    if len(set(keys)) != len(keys):
        raise KeySpecificationError(f"Duplicate key fields in {list(keys)}")
    return keys


def record_key(record: Record, keys: Sequence[FieldName]) -> KeyTuple:
    """Key tuple of an in-memory record; its values are already typed."""
    return tuple(record.get_field(k) for k in keys)


def field_type(schema, record_cls: type[Record], name: str) -> type:
    """Schema type of a field, falling back to the type the record declares."""
    return schema.field_type(record_cls, name) or record_cls.__fields__[name]


def row_key(row: dict[str, Any], keys: Sequence[FieldName], record_cls: type[Record], schema) -> KeyTuple:
    """
    Key tuple of a fetched row, each value coerced to the field's type.

    Raises:
        UnknownFieldError: If the row has no column for a key field.
        CoercionError: If a key value cannot be coerced.
    """
    values = []
    for k in keys:
        if k not in row:
            raise UnknownFieldError(record_cls.__table__ or record_cls.__name__, k)
        values.append(coerce(row[k], field_type(schema, record_cls, k)))
    return tuple(values)


# ── Fetching ──────────────────────────────────────────────

def collect_key_values(records: Iterable[Record], keys: Sequence[FieldName]) -> dict[FieldName, list[Any]]:
    """
    Distinct values per key field, in first-seen order.

    This is a per-column filter, not a list of tuples: with several key
    fields it can select rows whose combination matches no record. Those rows
    simply never match during reconciliation.
    """
    seen: dict[FieldName, dict[Any, None]] = {k: {} for k in keys}
    for record in records:
        for k in keys:
            seen[k].setdefault(record.get_field(k))
    return {k: list(values) for k, values in seen.items()}


def fetch_rows(repo, records: Sequence[Record], keys: Sequence[FieldName]) -> list[dict[str, Any]]:
    """Issue the single query for ``records``; errors propagate unchanged."""
    return repo.fetch(collect_key_values(records, keys), order_by=list(keys))


# ── Indexing ──────────────────────────────────────────────

def coerce_row(row: dict[str, Any], record_cls: type[Record], schema) -> dict[str, Any]:
    """Coerce every declared field present in ``row``; other columns are dropped."""
    return {
        name: coerce(row[name], field_type(schema, record_cls, name))
        for name in record_cls.__fields__
        if name in row
    }


def build_row_index(
    rows: Iterable[dict[str, Any]],
    keys: Sequence[FieldName],
    record_cls: type[Record],
    schema,
) -> RowIndex:
    """
    Map each row's key tuple to its coerced values.

    A later row with the same key tuple replaces an earlier one. A row whose
    values cannot be coerced is logged and left out; it behaves like a
    missing row for the record it would have matched.
    """
    index: RowIndex = {}
    for row in rows:
        try:
            key = row_key(row, keys, record_cls, schema)
            index[key] = coerce_row(row, record_cls, schema)
        except CoercionError as e:
            raw_key = tuple(row.get(k) for k in keys)
            logger.warning(f"Skipping {record_cls.__name__} row {raw_key}: {e}")
    return index


# ── Reconciliation ────────────────────────────────────────

def reconcile(records: Iterable[Record], index: RowIndex, keys: Sequence[FieldName]) -> tuple[int, int]:
    """
    Apply indexed rows to records in order.

    Each index entry is consumed by the first record that matches it; a
    second record with the same key tuple finds nothing and stays as is.

    Returns:
        (matched, missed) counts.
    """
    matched = missed = 0
    for record in records:
        row = index.pop(record_key(record, keys), None)
        if row is None:
            missed += 1
            continue
        record.replace_attributes(row)
        matched += 1
    return matched, missed


# ── Service ───────────────────────────────────────────────

class SyncService:
    """
    Refreshes lists of records with one query each.

    Args:
        repo_factory: Builds the query collaborator for a record class;
            anything with ``fetch(filters, order_by)`` works. Defaults to
            RecordRepository.
        schema: Answers ``field_type(record_cls, name)``; defaults to the
            types declared on the record class.
    """

    def __init__(
        self,
        repo_factory: Optional[Callable[[type[Record]], Any]] = None,
        schema=None,
    ):
        self.repo_factory = repo_factory or RecordRepository
        self.schema = schema or ModelSchema()

    def synchronize(self, records: Sequence[Record], key_fields: Optional[Sequence[str] | str] = None) -> None:
        """
        Replace each record's values with the stored row sharing its key.

        Args:
            records: Records of a single class, mutated in place.
            key_fields: Fields identifying a row; defaults to the primary key.

        Raises:
            UnknownFieldError: A key field is not declared (before any query).
            KeySpecificationError: Bad key list, or mixed record classes.
            QueryError: The fetch failed; no record was modified.
        """
        if not records:
            logger.debug("synchronize called with no records; nothing to do")
            return

        record_cls = type(records[0])
        stray = next((r for r in records if type(r) is not record_cls), None)
        if stray is not None:
            raise KeySpecificationError(
                f"Cannot synchronize {type(stray).__name__} together with {record_cls.__name__}"
            )
        keys = resolve_key_fields(record_cls, key_fields)

        rows = fetch_rows(self.repo_factory(record_cls), records, keys)
        index = build_row_index(rows, keys, record_cls, self.schema)
        matched, missed = reconcile(records, index, keys)

        logger.info(
            f"Synchronized {record_cls.__name__} on {list(keys)}: "
            f"{matched} refreshed, {missed} left unchanged ({len(rows)} rows fetched)"
        )


def synchronize(records: Sequence[Record], key_fields: Optional[Sequence[str] | str] = None) -> None:
    """Refresh ``records`` in place using the default repository and schema."""
    SyncService().synchronize(records, key_fields)
