"""
models/record.py
----------------
Base class for in-memory records loaded from a relational table.

A subclass declares its table, its fields and their Python types:

    class Post(Record):
        __table__ = "posts"
        __fields__ = {"id": int, "author": str, "title": str}

Field values live in a single mapping so that a refresh can swap every value at
once (see ``replace_attributes``). Values computed from the fields, such as an
associated record looked up by foreign key, are memoized with ``@derived`` and
dropped whenever the mapping is replaced.
"""

from functools import wraps
from typing import Any, Callable, ClassVar, Mapping, NewType

from db.types import coerce
from errors import UnknownFieldError

FieldName = NewType("FieldName", str)

_STATE_SLOTS = ("_attributes", "_derived_cache")


def derived(method: Callable[[Any], Any]) -> property:
    """
    Memoize a zero-argument method as a read-only property.

    The value is cached per instance until ``invalidate_derived_caches`` runs.
    """
    name = method.__name__

    @wraps(method)
    def getter(self: "Record") -> Any:
        cache = self._derived_cache
        if name not in cache:
            cache[name] = method(self)
        return cache[name]

    return property(getter)


class Record:
    """
    One persisted row mirrored in memory.

    Attributes:
        __table__: Table name, optionally schema-qualified ("public.posts").
        __fields__: Ordered mapping of field name to Python type.
        primary_key: Field used when no key specification is given.
    """

    __table__: ClassVar[str] = ""
    __fields__: ClassVar[dict[str, type]] = {}
    primary_key: ClassVar[str] = "id"

    def __init__(self, **values: Any):
        values = {self.resolve_field(name): value for name, value in values.items()}
        attributes = {
            name: coerce(values.get(name), field_type)
            for name, field_type in self.__fields__.items()
        }
        object.__setattr__(self, "_attributes", attributes)
        object.__setattr__(self, "_derived_cache", {})

    # ── Field names ───────────────────────────────────────

    @classmethod
    def resolve_field(cls, name: Any) -> FieldName:
        """
        Turn a caller-supplied name into the canonical field name.

        Raises:
            UnknownFieldError: If the class declares no such field.
        """
        if not isinstance(name, str):
            raise UnknownFieldError(cls.__name__, repr(name))
        canonical = name.strip()
        if canonical not in cls.__fields__:
            raise UnknownFieldError(cls.__name__, canonical)
        return FieldName(canonical)

    @classmethod
    def field_names(cls) -> tuple[FieldName, ...]:
        return tuple(FieldName(name) for name in cls.__fields__)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Record":
        """Build a record from a fetched row, ignoring undeclared columns."""
        return cls(**{name: row[name] for name in cls.field_names() if name in row})

    # ── Field access ──────────────────────────────────────

    def get_field(self, name: str) -> Any:
        return self._attributes[self.resolve_field(name)]

    def attributes(self) -> dict[str, Any]:
        """Return a copy of the current field values."""
        return dict(self._attributes)

    def __getattr__(self, name: str) -> Any:
        # only reached when normal lookup fails
        attributes = self.__dict__.get("_attributes")
        if attributes is not None and name in attributes:
            return attributes[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__fields__:
            self._attributes[name] = coerce(value, self.__fields__[name])
            self.invalidate_derived_caches()
        elif name in _STATE_SLOTS:
            raise AttributeError(f"{name} is managed by Record")
        else:
            object.__setattr__(self, name, value)

    # ── Refresh ───────────────────────────────────────────

    def invalidate_derived_caches(self) -> None:
        """Forget every value memoized with ``@derived``."""
        self._derived_cache.clear()

    def replace_attributes(self, values: Mapping[str, Any]) -> None:
        """
        Swap the whole field mapping for ``values`` in one step.

        Derived caches are invalidated first. Declared fields missing from
        ``values`` become None and undeclared keys are dropped. Values are
        stored as given; callers pass already-coerced data.
        """
        replacement = {name: values.get(name) for name in self.field_names()}
        self.invalidate_derived_caches()
        object.__setattr__(self, "_attributes", replacement)

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={value!r}" for name, value in self._attributes.items())
        return f"{type(self).__name__}({fields})"
