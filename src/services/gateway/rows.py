"""Row storage backed by async SQLAlchemy."""
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import and_, delete, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.base import Base
from models.bookmark import Bookmark
from services.errors import RemoteFetchError, RemoteWriteError
from services.gateway.types import Change, ChangeEvent, Order

logger = logging.getLogger(__name__)

BOOKMARKS_TABLE = "bookmarks"

# Tables reachable through the gateway
TABLES: dict[str, type[Base]] = {
    BOOKMARKS_TABLE: Bookmark,
}


def _row_to_dict(obj: Base) -> dict[str, Any]:
    """Convert an ORM object to a plain row dict (column attributes only)."""
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class SqlRowStore:
    """Select/insert/delete against registered tables with equality filters."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _model(table: str, error: type[Exception]) -> type[Base]:
        model = TABLES.get(table)
        if model is None:
            raise error(f"Unknown table: {table}")
        return model

    @staticmethod
    def _conditions(
        model: type[Base],
        filters: Mapping[str, Any],
        error: type[Exception],
    ) -> list:
        """Build equality clauses, rejecting columns the table does not have."""
        columns = model.__table__.c
        conditions = []
        for name, value in filters.items():
            if name not in columns:
                raise error(f"Unknown column for {model.__tablename__}: {name}")
            conditions.append(columns[name] == value)
        return conditions

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch rows matching every filter.

        Args:
            table: Registered table name.
            filters: Column name -> required value.
            order:
                Optional sort column. The primary key is appended in the same
                direction so rows sharing a timestamp come back in a stable order.

        Returns:
            Rows as plain dicts.

        Raises:
            RemoteFetchError: Unknown table/column or database failure.
        """
        model = self._model(table, RemoteFetchError)
        query = select(model)
        conditions = self._conditions(model, filters, RemoteFetchError)
        if conditions:
            query = query.where(and_(*conditions))

        if order is not None:
            columns = model.__table__.c
            if order.column not in columns:
                raise RemoteFetchError(f"Unknown sort column for {table}: {order.column}")
            sort_columns = [columns[order.column], *model.__table__.primary_key.columns]
            query = query.order_by(
                *(c.asc() if order.ascending else c.desc() for c in sort_columns),
            )

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [_row_to_dict(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.warning("Select on %s failed: %s", table, e)
            raise RemoteFetchError(f"Select on {table} failed") from e

    async def insert(self, table: str, record: Mapping[str, Any]) -> Change:
        """
        Insert one row and return the committed change.

        The returned change carries server-assigned values (id, created_at).
        """
        model = self._model(table, RemoteWriteError)
        columns = model.__table__.c
        unknown = [name for name in record if name not in columns]
        if unknown:
            raise RemoteWriteError(f"Unknown columns for {table}: {', '.join(unknown)}")

        try:
            async with self._session_factory() as session:
                obj = model(**record)
                session.add(obj)
                await session.flush()
                await session.refresh(obj)
                row = _row_to_dict(obj)
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("Insert into %s failed: %s", table, e)
            raise RemoteWriteError(f"Insert into {table} failed") from e

        return Change(table=table, event=ChangeEvent.INSERT, record=row)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> list[Change]:
        """
        Delete rows matching every filter and return one change per deleted row.

        An empty filter is refused rather than wiping the table.
        """
        model = self._model(table, RemoteWriteError)
        if not filters:
            raise RemoteWriteError(f"Refusing unfiltered delete on {table}")
        conditions = self._conditions(model, filters, RemoteWriteError)

        try:
            async with self._session_factory() as session:
                result = await session.execute(select(model).where(and_(*conditions)))
                rows = [_row_to_dict(obj) for obj in result.scalars().all()]
                if rows:
                    await session.execute(delete(model).where(and_(*conditions)))
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("Delete from %s failed: %s", table, e)
            raise RemoteWriteError(f"Delete from {table} failed") from e

        return [Change(table=table, event=ChangeEvent.DELETE, old_record=row) for row in rows]
