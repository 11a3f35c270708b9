from datetime import date
from typing import Any
from unittest.mock import MagicMock

import pytest

from models.record import Record, derived
from services.sync_service import SyncService


class Person(Record):
    __table__ = "people"
    __fields__ = {"id": int, "name": str}


class Post(Record):
    __table__ = "posts"
    __fields__ = {"id": int, "author": str, "title": str, "published_on": date}

    @derived
    def byline(self) -> list[str]:
        """A fresh list each time it is computed, so identity shows caching."""
        return [self.author, self.title]


class FakeRepository:
    """In-memory stand-in for RecordRepository that records every fetch."""

    def __init__(self, rows: list[dict[str, Any]], apply_filters: bool = True, error: Exception | None = None):
        self.rows = rows
        self.apply_filters = apply_filters
        self.error = error
        self.calls: list[tuple[dict, list]] = []

    def fetch(self, filters, order_by=()):
        self.calls.append(({k: list(v) for k, v in filters.items()}, list(order_by)))
        if self.error is not None:
            raise self.error
        rows = [dict(r) for r in self.rows]
        if self.apply_filters:
            rows = [r for r in rows if all(r.get(col) in values for col, values in filters.items())]
            rows.sort(key=lambda r: tuple(r[col] for col in order_by))
        return rows


@pytest.fixture
def make_service():
    """Build a SyncService over a FakeRepository; returns (service, repo)."""

    def _make(rows: list[dict[str, Any]], **kwargs) -> tuple[SyncService, FakeRepository]:
        repo = FakeRepository(rows, **kwargs)
        return SyncService(repo_factory=lambda model: repo), repo

    return _make


@pytest.fixture
def mock_connection() -> tuple[MagicMock, MagicMock]:
    """A psycopg2-like connection whose cursor() works as a context manager."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = None
    return conn, cursor
