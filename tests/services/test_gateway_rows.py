"""Tests for the SQLAlchemy row store."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.errors import RemoteFetchError, RemoteWriteError
from services.gateway.rows import BOOKMARKS_TABLE, SqlRowStore
from services.gateway.types import ChangeEvent, Order

NEWEST_FIRST = Order("created_at", ascending=False)


@pytest.fixture
def rows(session_factory: async_sessionmaker[AsyncSession]) -> SqlRowStore:
    return SqlRowStore(session_factory)


class TestSelect:
    """Tests for SqlRowStore.select."""

    async def test__select__filters_by_owner(self, rows: SqlRowStore) -> None:
        """Only rows matching every filter come back."""
        await rows.insert(BOOKMARKS_TABLE, {"title": "Mine", "url": "https://a", "user_id": "user-1"})
        await rows.insert(BOOKMARKS_TABLE, {"title": "Theirs", "url": "https://b", "user_id": "user-2"})

        result = await rows.select(BOOKMARKS_TABLE, {"user_id": "user-1"}, NEWEST_FIRST)

        assert [row["title"] for row in result] == ["Mine"]
        assert set(result[0]) >= {"id", "title", "url", "user_id", "created_at"}

    async def test__select__newest_first_with_stable_ties(self, rows: SqlRowStore) -> None:
        """Rows inserted within the same second still come back newest first."""
        for title in ("A", "B", "C"):
            await rows.insert(BOOKMARKS_TABLE, {"title": title, "url": "https://x", "user_id": "user-1"})

        result = await rows.select(BOOKMARKS_TABLE, {"user_id": "user-1"}, NEWEST_FIRST)

        assert [row["title"] for row in result] == ["C", "B", "A"]

    async def test__select__unknown_table_raises(self, rows: SqlRowStore) -> None:
        """Tables outside the registry are rejected."""
        with pytest.raises(RemoteFetchError):
            await rows.select("users", {})

    async def test__select__unknown_column_raises(self, rows: SqlRowStore) -> None:
        """Filters on columns the table lacks are rejected."""
        with pytest.raises(RemoteFetchError):
            await rows.select(BOOKMARKS_TABLE, {"owner": "user-1"})

    async def test__select__unknown_sort_column_raises(self, rows: SqlRowStore) -> None:
        """Sorting on a missing column is rejected."""
        with pytest.raises(RemoteFetchError):
            await rows.select(BOOKMARKS_TABLE, {}, Order("rank"))


class TestInsert:
    """Tests for SqlRowStore.insert."""

    async def test__insert__returns_change_with_server_values(self, rows: SqlRowStore) -> None:
        """The change carries the assigned id and timestamp."""
        change = await rows.insert(
            BOOKMARKS_TABLE,
            {"title": "Example", "url": "http://example.com", "user_id": "user-1"},
        )

        assert change.event == ChangeEvent.INSERT
        assert change.table == BOOKMARKS_TABLE
        assert change.record["id"] is not None
        assert change.record["created_at"] is not None
        assert change.record["user_id"] == "user-1"

    async def test__insert__unknown_column_raises(self, rows: SqlRowStore) -> None:
        """Columns the table lacks are rejected before touching the database."""
        with pytest.raises(RemoteWriteError):
            await rows.insert(BOOKMARKS_TABLE, {"title": "T", "url": "u", "user_id": "user-1", "x": 1})

    async def test__insert__missing_required_value_raises(self, rows: SqlRowStore) -> None:
        """A NOT NULL violation surfaces as RemoteWriteError."""
        with pytest.raises(RemoteWriteError):
            await rows.insert(BOOKMARKS_TABLE, {"title": "T", "user_id": "user-1"})


class TestDelete:
    """Tests for SqlRowStore.delete."""

    async def test__delete__requires_every_filter_to_match(self, rows: SqlRowStore) -> None:
        """Deleting by id and owner leaves another user's row with that id alone."""
        theirs = await rows.insert(BOOKMARKS_TABLE, {"title": "Theirs", "url": "https://b", "user_id": "user-2"})

        changes = await rows.delete(BOOKMARKS_TABLE, {"id": theirs.record["id"], "user_id": "user-1"})

        assert changes == []
        remaining = await rows.select(BOOKMARKS_TABLE, {"user_id": "user-2"})
        assert len(remaining) == 1

    async def test__delete__returns_one_change_per_row(self, rows: SqlRowStore) -> None:
        """Each deleted row is reported with its old values."""
        mine = await rows.insert(BOOKMARKS_TABLE, {"title": "Mine", "url": "https://a", "user_id": "user-1"})

        changes = await rows.delete(BOOKMARKS_TABLE, {"id": mine.record["id"], "user_id": "user-1"})

        assert [c.event for c in changes] == [ChangeEvent.DELETE]
        assert changes[0].old_record["title"] == "Mine"
        assert await rows.select(BOOKMARKS_TABLE, {"user_id": "user-1"}) == []

    async def test__delete__refuses_empty_filter(self, rows: SqlRowStore) -> None:
        """An unfiltered delete is never issued."""
        await rows.insert(BOOKMARKS_TABLE, {"title": "Mine", "url": "https://a", "user_id": "user-1"})

        with pytest.raises(RemoteWriteError):
            await rows.delete(BOOKMARKS_TABLE, {})

        assert len(await rows.select(BOOKMARKS_TABLE, {})) == 1
