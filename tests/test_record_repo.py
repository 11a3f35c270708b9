from unittest.mock import patch
from uuid import UUID

import psycopg2
import pytest
from psycopg2 import extras, sql
from psycopg2.extensions import adapt

from errors import QueryError
from models.record import Record
from repositories.record_repo import RecordRepository
from tests.conftest import Person


class Token(Record):
    __table__ = "tokens"
    __fields__ = {"id": UUID, "scope": str}


class TestRecordRepositoryFetch:
    """RecordRepository.fetch against a mocked psycopg2 connection."""

    def test_fetch_runs_one_query_and_returns_dicts(self, mock_connection):
        conn, cursor = mock_connection
        cursor.fetchall.return_value = [{"id": 1, "name": "Zachary"}]

        with patch("repositories.record_repo.get_connection", return_value=conn), patch(
            "repositories.record_repo.release_connection"
        ) as release:
            rows = RecordRepository(Person).fetch({"id": [1, 2]}, ["id"])

        assert rows == [{"id": 1, "name": "Zachary"}]
        conn.cursor.assert_called_once_with(cursor_factory=extras.RealDictCursor)
        cursor.execute.assert_called_once()
        query, params = cursor.execute.call_args[0]
        assert isinstance(query, sql.Composed)
        assert params == [[1, 2]]
        release.assert_called_once_with(conn)

    def test_database_error_becomes_query_error(self, mock_connection):
        conn, cursor = mock_connection
        cursor.execute.side_effect = psycopg2.ProgrammingError("relation does not exist")

        with patch("repositories.record_repo.get_connection", return_value=conn), patch(
            "repositories.record_repo.release_connection"
        ) as release:
            with pytest.raises(QueryError) as exc_info:
                RecordRepository(Person).fetch({"id": [1]}, ["id"])

        assert exc_info.value.table == "people"
        assert isinstance(exc_info.value.__cause__, psycopg2.ProgrammingError)
        conn.rollback.assert_called_once()
        release.assert_called_once_with(conn)

    def test_find_builds_model_instances(self, mock_connection):
        conn, cursor = mock_connection
        cursor.fetchall.return_value = [{"id": 2, "name": "Amy"}, {"id": 3, "name": "Bo"}]

        with patch("repositories.record_repo.get_connection", return_value=conn), patch(
            "repositories.record_repo.release_connection"
        ):
            people = RecordRepository(Person).find({"name": ["Amy", "Bo"]})

        assert [type(p) for p in people] == [Person, Person]
        assert [p.id for p in people] == [2, 3]

    def test_model_without_table(self):
        class Orphan(Record):
            __fields__ = {"id": int}

        with pytest.raises(ValueError):
            RecordRepository(Orphan)


class TestBuildSelect:
    """Parameter shapes produced for the declarative filter."""

    def test_one_array_parameter_per_column(self):
        _, params = RecordRepository(Person)._build_select({"id": [3, 1], "name": ["a"]}, ["id", "name"])
        assert params == [[3, 1], ["a"]]

    def test_none_values_become_is_null(self):
        query, params = RecordRepository(Person)._build_select({"name": ["a", None]}, [])
        assert params == [["a"]]
        assert sql.SQL("{} IS NULL").format(sql.Identifier("name")) in query.seq[3].seq

    def test_only_none(self):
        _, params = RecordRepository(Person)._build_select({"name": [None]}, [])
        assert params == []

    def test_empty_value_list_matches_nothing(self):
        query, params = RecordRepository(Person)._build_select({"id": []}, [])
        assert params == []
        assert sql.SQL("FALSE") in query.seq[3].seq

    def test_no_filters_has_no_where_clause(self):
        query, params = RecordRepository(Person)._build_select({}, [])
        assert params == []
        assert sql.SQL(" WHERE ") not in query.seq

    def test_uuid_keys_are_adaptable(self):
        token = Token(id="12345678-1234-5678-1234-567812345678", scope="read")
        _, params = RecordRepository(Token)._build_select({"id": [token.id]}, ["id"])
        assert params == [[token.id]]
        assert adapt(params[0][0]).getquoted() == b"'12345678-1234-5678-1234-567812345678'::uuid"
