"""Relational backend on SQLModel async sessions (PostgreSQL or SQLite)."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar

from sqlalchemy import delete as sa_delete, text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from qr_feedback.domain.exceptions import PersistenceError, TransientIOError
from qr_feedback.infrastructure.retry import DEFAULT_POLICY, RetryPolicy, with_retry, with_timeout

from .base import Filter, ModelT, check_fields, merge

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlAdapter(Generic[ModelT]):
    """Adapter mapping domain records onto one SQLModel table.

    ``table`` is the ``table=True`` model, ``model`` the plain record type
    handed back to callers.
    """

    def __init__(
        self,
        session_maker: sessionmaker,
        table: Type[SQLModel],
        model: Type[ModelT],
        policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self.session_maker = session_maker
        self.table = table
        self.model = model
        self.policy = policy

    def _row_values(self, record: ModelT) -> Dict[str, Any]:
        # JSON mode flattens nested models for the JSON columns; datetimes stay native
        values = record.model_dump(mode="json")
        for name in values:
            value = getattr(record, name)
            if isinstance(value, datetime):
                values[name] = value
        return values

    def _to_row(self, record: ModelT) -> SQLModel:
        return self.table(**self._row_values(record))

    def _to_record(self, row: SQLModel) -> ModelT:
        return self.model.model_validate({name: getattr(row, name) for name in self.model.model_fields})

    def _where(self, statement, filter: Optional[Filter]):
        if not filter:
            return statement
        check_fields(self.model, filter)
        for key, value in filter.items():
            if isinstance(value, Enum):
                value = value.value
            statement = statement.where(getattr(self.table, key) == value)
        return statement

    async def _attempt(self, name: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_maker() as session:
                result = await work(session)
                await session.commit()
                return result
        except (OperationalError, InterfaceError, OSError) as e:
            raise TransientIOError(f"{name} failed: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"{name} failed: {e}") from e

    async def _run(self, name: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        name = f"{self.table.__tablename__}.{name}"
        return await with_retry(lambda: self._attempt(name, work), policy=self.policy, name=name)

    async def put(self, record: ModelT) -> None:
        async def work(session: AsyncSession) -> None:
            await session.merge(self._to_row(record))

        await self._run("put", work)

    async def get(self, id: str) -> Optional[ModelT]:
        async def work(session: AsyncSession) -> Optional[ModelT]:
            row = await session.get(self.table, id)
            return self._to_record(row) if row is not None else None

        return await self._run("get", work)

    async def get_all(
        self,
        filter: Optional[Filter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        statement = self._where(select(self.table), filter)
        if newest_first:
            statement = statement.order_by(self.table.created_at.desc())
        if limit is not None:
            statement = statement.limit(max(limit, 0))

        async def work(session: AsyncSession) -> List[ModelT]:
            rows = await session.exec(statement)
            return [self._to_record(row) for row in rows.all()]

        return await self._run("get_all", work)

    async def update(self, id: str, fields: Mapping[str, Any]) -> Optional[ModelT]:
        async def work(session: AsyncSession) -> Optional[ModelT]:
            row = await session.get(self.table, id)
            if row is None:
                return None
            merged = merge(self.model, self._to_record(row), fields)
            for key, value in self._row_values(merged).items():
                setattr(row, key, value)
            session.add(row)
            return merged

        return await self._run("update", work)

    async def delete(self, id: str) -> bool:
        async def work(session: AsyncSession) -> bool:
            row = await session.get(self.table, id)
            if row is None:
                return False
            await session.delete(row)
            return True

        return await self._run("delete", work)

    async def delete_many(self, filter: Filter) -> int:
        statement = self._where(sa_delete(self.table), filter)

        async def work(session: AsyncSession) -> int:
            result = await session.exec(statement)
            return result.rowcount or 0

        return await self._run("delete_many", work)

    async def ping(self) -> bool:
        async def work(session: AsyncSession) -> bool:
            await session.exec(text("SELECT 1"))
            return True

        try:
            return await with_timeout(self._attempt("ping", work), self.policy.timeout, "ping")
        except PersistenceError as e:
            logger.info(f"Database unreachable: {e}")
            return False
