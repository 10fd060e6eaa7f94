"""Tests for the Database gateway."""

from datetime import datetime

import pytest
from sqlalchemy import event, insert, select
from sqlalchemy.exc import SQLAlchemyError

from taskapi.db import Database
from taskapi.errors import StoreError
from taskapi.models import task_table


def _insert(name, **values):
    values.setdefault("created_at", datetime(2024, 1, 1, 12, 0, 0))
    return insert(task_table).values(name=name, **values)


class TestExecuteQuery:
    async def test_empty_table_returns_empty_list(self, database):
        rows = await database.execute_query(select(task_table))
        assert rows == []

    async def test_rows_are_keyed_by_column(self, database):
        await database.execute_non_query(_insert("Read rows", status="todo"))

        rows = await database.execute_query(
            "SELECT taskid, name, status FROM task WHERE name = :name",
            {"name": "Read rows"},
        )

        assert len(rows) == 1
        assert rows[0]["name"] == "Read rows"
        assert rows[0]["status"] == "todo"

    async def test_parameters_are_bound_not_interpolated(self, database):
        await database.execute_non_query(_insert("safe"))

        rows = await database.execute_query(
            "SELECT taskid FROM task WHERE name = :name",
            {"name": "safe' OR '1'='1"},
        )

        assert rows == []


class TestExecuteScalar:
    async def test_count(self, database):
        await database.execute_non_query(_insert("one"))
        await database.execute_non_query(_insert("two"))

        count = await database.execute_scalar("SELECT COUNT(*) FROM task")

        assert count == 2

    async def test_no_row_returns_none(self, database):
        value = await database.execute_scalar(
            "SELECT name FROM task WHERE taskid = :task_id", {"task_id": 42}
        )
        assert value is None


class TestExecuteNonQuery:
    async def test_insert_reports_generated_id(self, database):
        first = await database.execute_non_query(_insert("first"))
        second = await database.execute_non_query(_insert("second"))

        assert first.rowcount == 1
        assert first.inserted_id is not None
        assert second.inserted_id == first.inserted_id + 1

    async def test_update_reports_rows_affected(self, database):
        result = await database.execute_non_query(_insert("before"))

        updated = await database.execute_non_query(
            "UPDATE task SET name = :name WHERE taskid = :task_id",
            {"name": "after", "task_id": result.inserted_id},
        )
        missing = await database.execute_non_query(
            "UPDATE task SET name = :name WHERE taskid = :task_id",
            {"name": "after", "task_id": 9999},
        )

        assert updated.rowcount == 1
        assert updated.inserted_id is None
        assert missing.rowcount == 0

    async def test_changes_are_committed(self, database):
        await database.execute_non_query(_insert("persisted"))

        count = await database.execute_scalar("SELECT COUNT(*) FROM task")

        assert count == 1


class TestStatementValidation:
    @pytest.mark.parametrize("statement", ["", "   "])
    async def test_blank_statement_rejected(self, database, statement):
        with pytest.raises(ValueError, match="Query cannot be null or empty"):
            await database.execute_query(statement)


class TestStoreErrors:
    async def test_unreachable_store(self, unreachable_config):
        database = Database(unreachable_config)
        try:
            with pytest.raises(StoreError) as exc_info:
                await database.execute_query(select(task_table))
        finally:
            await database.dispose()

        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        assert exc_info.value.error

    async def test_failed_statement(self, database):
        with pytest.raises(StoreError) as exc_info:
            await database.execute_query("SELECT * FROM no_such_table")

        assert "no_such_table" in exc_info.value.error

    async def test_gateway_usable_after_failure(self, database):
        with pytest.raises(StoreError):
            await database.execute_non_query("INSERT INTO no_such_table (x) VALUES (1)")

        await database.execute_non_query(_insert("still works"))
        assert await database.execute_scalar("SELECT COUNT(*) FROM task") == 1

    async def test_integer_overflow(self, database):
        with pytest.raises(StoreError) as exc_info:
            await database.execute_query(
                "SELECT taskid FROM task WHERE taskid = :task_id", {"task_id": 2**63}
            )

        assert isinstance(exc_info.value.__cause__, OverflowError)


class TestConnectionRelease:
    CALLS = 30

    @pytest.fixture
    def pool_usage(self, database):
        usage = {"checkout": 0, "checkin": 0}

        def on_checkout(dbapi_conn, record, proxy):
            usage["checkout"] += 1

        def on_checkin(dbapi_conn, record):
            usage["checkin"] += 1

        event.listen(database.engine.sync_engine, "checkout", on_checkout)
        event.listen(database.engine.sync_engine, "checkin", on_checkin)
        yield usage
        event.remove(database.engine.sync_engine, "checkout", on_checkout)
        event.remove(database.engine.sync_engine, "checkin", on_checkin)

    async def test_released_after_failed_reads(self, database, pool_usage):
        for _ in range(self.CALLS):
            with pytest.raises(StoreError):
                await database.execute_query("SELECT * FROM no_such_table")

        assert pool_usage["checkout"] == self.CALLS
        assert pool_usage["checkin"] == self.CALLS

    async def test_released_after_failed_writes(self, database, pool_usage):
        for _ in range(self.CALLS):
            with pytest.raises(StoreError):
                await database.execute_non_query("INSERT INTO no_such_table (x) VALUES (1)")

        assert pool_usage["checkout"] == pool_usage["checkin"] == self.CALLS

    async def test_released_after_empty_and_successful_calls(self, database, pool_usage):
        await database.execute_query(select(task_table))
        await database.execute_scalar("SELECT COUNT(*) FROM task")
        await database.execute_non_query(_insert("released"))

        assert pool_usage["checkout"] == pool_usage["checkin"] == 3
