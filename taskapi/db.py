import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Mapping, Optional, Union
from sqlalchemy import text
from sqlalchemy.engine import RowMapping, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql import Executable
from .config import DatabaseConfig
from .errors import StoreError
from .models import Base

logger = logging.getLogger(__name__)

Statement = Union[str, Executable]
Params = Optional[Mapping[str, Any]]


@dataclass(frozen=True)
class NonQueryResult:
    rowcount: int
    inserted_id: Optional[int] = None


def _prepare(statement: Statement) -> Executable:
    if isinstance(statement, str):
        if not statement.strip():
            raise ValueError("Query cannot be null or empty.")
        return text(statement)
    if statement is None:
        raise ValueError("Query cannot be null or empty.")
    return statement


class Database:
    """Gateway to the relational store.

    Every call runs on its own connection, acquired inside an ``async with``
    scope so it is released on success, on an empty result and on failure.
    Driver and SQLAlchemy errors surface as ``StoreError``.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: AsyncEngine = create_async_engine(
            config.url,
            echo=config.echo,
            **self._engine_options(config),
        )
        logger.info(
            "Database engine created for %s",
            make_url(config.url).render_as_string(hide_password=True),
        )

    @staticmethod
    def _engine_options(config: DatabaseConfig) -> dict:
        if config.is_sqlite:
            return {}

        options = {
            "pool_pre_ping": True,  # Verify connections before use
            "pool_size": config.pool_size,
            "max_overflow": config.max_overflow,
            "pool_timeout": config.pool_timeout,
            "pool_recycle": config.pool_recycle,
        }
        if config.is_asyncpg:
            options["connect_args"] = {
                "server_settings": {"application_name": "taskapi"},
            }
        return options

    @asynccontextmanager
    async def connection(self, transactional: bool = False) -> AsyncIterator[AsyncConnection]:
        """Open a connection for a single call, committing when transactional"""
        try:
            if transactional:
                async with self.engine.begin() as conn:
                    yield conn
            else:
                async with self.engine.connect() as conn:
                    yield conn
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), error=str(getattr(exc, "orig", None) or exc)) from exc
        except OSError as exc:
            raise StoreError(f"Could not reach the database: {exc}", error=str(exc)) from exc
        except OverflowError as exc:
            # Raised by drivers binding integers wider than the column allows
            raise StoreError(str(exc), error=str(exc)) from exc

    async def execute_query(self, statement: Statement, params: Params = None) -> List[RowMapping]:
        """Run a read statement and return every row, keyed by column name"""
        stmt = _prepare(statement)
        async with self.connection() as conn:
            result = await conn.execute(stmt, dict(params) if params else None)
            return list(result.mappings().all())

    async def execute_scalar(self, statement: Statement, params: Params = None) -> Any:
        """Run a statement and return the first column of the first row, or None"""
        stmt = _prepare(statement)
        async with self.connection() as conn:
            result = await conn.execute(stmt, dict(params) if params else None)
            return result.scalar()

    async def execute_non_query(self, statement: Statement, params: Params = None) -> NonQueryResult:
        """Run an INSERT, UPDATE or DELETE inside a committed transaction"""
        stmt = _prepare(statement)
        async with self.connection(transactional=True) as conn:
            result = await conn.execute(stmt, dict(params) if params else None)
            inserted_id = None
            if getattr(result, "is_insert", False) and result.inserted_primary_key:
                inserted_id = result.inserted_primary_key[0]
            return NonQueryResult(rowcount=result.rowcount, inserted_id=inserted_id)

    async def create_schema(self) -> None:
        """Create the task table when it does not exist yet"""
        async with self.connection(transactional=True) as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")
