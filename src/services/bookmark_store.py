"""Local copy of the current user's bookmarks and the mutations on it."""
import logging

from pydantic import ValidationError

from schemas.bookmark import BookmarkRecord
from services.errors import RemoteFetchError, RemoteWriteError
from services.gateway.protocol import RemoteGateway
from services.gateway.rows import BOOKMARKS_TABLE
from services.gateway.types import Order
from services.session_context import SessionContext

logger = logging.getLogger(__name__)

NEWEST_FIRST = Order("created_at", ascending=False)


class BookmarkStore:
    """
    Mediates reads and writes of the bookmark collection.

    The collection is only ever replaced wholesale by refresh(); mutations
    never patch it in place. Gateway errors are logged and swallowed, leaving
    the collection as it was.
    """

    def __init__(self, gateway: RemoteGateway, context: SessionContext) -> None:
        self._gateway = gateway
        self._context = context

    async def refresh(self, user_id: str | None) -> bool:
        """
        Replace the collection with the user's rows, newest first.

        Returns:
            True if the collection was replaced. False on fetch failure, or when
            the session moved on (sign-out, other user) while the fetch was in
            flight; the stale result is discarded.
        """
        if not user_id:
            return False
        epoch = self._context.epoch

        try:
            rows = await self._gateway.select(
                BOOKMARKS_TABLE,
                {"user_id": user_id},
                NEWEST_FIRST,
            )
        except RemoteFetchError as e:
            logger.warning("bookmark_refresh_failed", extra={"user_id": user_id, "error": str(e)})
            return False

        if not self._context.is_current(user_id, epoch):
            logger.info("stale_refresh_discarded", extra={"user_id": user_id})
            return False

        try:
            records = [BookmarkRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.warning("Malformed bookmark rows for %s: %s", user_id, e)
            return False

        # The backend scopes rows to the user; filter again so a missing
        # predicate on the server side can never leak another user's rows
        owned = [record for record in records if record.user_id == user_id]
        if len(owned) != len(records):
            logger.warning(
                "foreign_rows_dropped",
                extra={"user_id": user_id, "count": len(records) - len(owned)},
            )

        self._context.replace_bookmarks(owned)
        return True

    async def add(self, user_id: str | None, title: str, url: str) -> bool:
        """
        Insert a bookmark for `user_id`.

        Empty title/url/user is a no-op without a gateway call. The collection is
        not touched; the caller (or the change feed) refreshes.
        """
        if not title or not url or not user_id:
            return False

        try:
            await self._gateway.insert(
                BOOKMARKS_TABLE,
                {"title": title, "url": url, "user_id": user_id},
            )
        except RemoteWriteError as e:
            logger.warning("bookmark_add_failed", extra={"user_id": user_id, "error": str(e)})
            return False
        return True

    async def remove(self, bookmark_id: int, user_id: str | None) -> bool:
        """Delete one of the user's bookmarks, then refresh."""
        if not user_id:
            return False

        try:
            await self._gateway.delete(
                BOOKMARKS_TABLE,
                {"id": bookmark_id, "user_id": user_id},
            )
        except RemoteWriteError as e:
            logger.warning(
                "bookmark_remove_failed",
                extra={"user_id": user_id, "bookmark_id": bookmark_id, "error": str(e)},
            )
            return False

        await self.refresh(user_id)
        return True
