"""
errors.py
---------
Exception hierarchy for record synchronization.

    SyncError
    ├── UnknownFieldError      a key or field name the record type does not declare
    ├── KeySpecificationError  an empty/duplicated key list or mixed record types
    ├── CoercionError          a raw column value that cannot become the field type
    └── QueryError             the store rejected or failed the fetch
"""


class SyncError(Exception):
    """Base class for every error raised while synchronizing records."""


class UnknownFieldError(SyncError, KeyError):
    """Raised when a field name does not exist on the record type or row."""

    def __init__(self, owner: str, field_name: str):
        self.owner = owner
        self.field_name = field_name
        super().__init__(f"{owner} has no field named '{field_name}'")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class KeySpecificationError(SyncError, ValueError):
    """Raised when a key specification cannot identify records."""


class CoercionError(SyncError, ValueError):
    """Raised when a raw value cannot be converted to a field's type."""

    def __init__(self, value, field_type: type, reason: str = ""):
        self.value = value
        self.field_type = field_type
        message = f"Cannot coerce {value!r} to {getattr(field_type, '__name__', field_type)}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class QueryError(SyncError):
    """Raised when the store reports an error for a fetch."""

    def __init__(self, table: str, detail: str):
        self.table = table
        self.detail = detail
        super().__init__(f"Query on '{table}' failed: {detail}")
