"""
db/types.py
-----------
Coercion of raw column values into the Python types records declare.

psycopg2 already returns typed values for most columns, but rows can also come
from text sources (COPY output, JSON payloads, hand-built fixtures), and record
keys must compare equal regardless of where the value came from: ``"7"`` and
``7`` for an integer key are the same identifier.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from dateutil import parser as date_parser

from errors import CoercionError

_TRUE_STRINGS = frozenset({"t", "true", "1", "yes", "y", "on"})
_FALSE_STRINGS = frozenset({"f", "false", "0", "no", "n", "off"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError("not a boolean literal")
    if isinstance(value, (int, Decimal)):
        return bool(value)
    raise TypeError(f"unsupported source type {type(value).__name__}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("booleans are not integers")
    if isinstance(value, (float, Decimal)) and value != int(value):
        raise ValueError("fractional value")
    if isinstance(value, str):
        return int(value.strip())
    return int(value)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date_parser.isoparse(value.strip()).date()
    raise TypeError(f"unsupported source type {type(value).__name__}")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return date_parser.isoparse(value.strip())
    raise TypeError(f"unsupported source type {type(value).__name__}")


def _to_time(value: Any) -> time:
    if isinstance(value, datetime):
        return value.timetz()
    if isinstance(value, str):
        return date_parser.isoparser().parse_isotime(value.strip())
    raise TypeError(f"unsupported source type {type(value).__name__}")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, str):
        return float(value.strip())
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    return Decimal(str(value).strip())


_CONVERTERS = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    Decimal: _to_decimal,
    str: str,
    date: _to_date,
    datetime: _to_datetime,
    time: _to_time,
    UUID: lambda value: UUID(str(value)),
}


def coerce(value: Any, field_type: type) -> Any:
    """
    Convert ``value`` to ``field_type``.

    ``None`` is preserved (NULL columns), values that already have the exact
    type are returned as-is, and anything else goes through the converter
    registered for the type, or the type's own constructor.

    Raises:
        CoercionError: If the value cannot be represented as ``field_type``.
    """
    if value is None:
        return None
    # bool subclasses int, and datetime subclasses date
    if type(value) is field_type:
        return value
    converter = _CONVERTERS.get(field_type, field_type)
    try:
        return converter(value)
    except (TypeError, ValueError, ArithmeticError, InvalidOperation, OverflowError) as e:
        raise CoercionError(value, field_type, str(e)) from e
