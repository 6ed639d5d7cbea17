"""Shared mutable state of one client session."""
import logging
from collections.abc import Callable

from schemas.bookmark import BookmarkRecord
from services.gateway.types import AuthUser, SubscriptionHandle

logger = logging.getLogger(__name__)

StateListener = Callable[[], None]


class SessionContext:
    """
    Current user, bookmark collection and open subscription for one client.

    Owned by a single SessionController and passed by reference to the store.
    The epoch increases on every identity reset; a fetch started under an older
    epoch (or for another user) must not write its result here.
    """

    def __init__(self) -> None:
        self.user: AuthUser | None = None
        self.bookmarks: list[BookmarkRecord] = []
        self.subscription: SubscriptionHandle | None = None
        self.epoch = 0
        self._listeners: list[StateListener] = []

    @property
    def user_id(self) -> str | None:
        """Identifier of the signed-in user, None when anonymous."""
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def is_current(self, user_id: str, epoch: int) -> bool:
        """True if `user_id` is still signed in and no reset happened since `epoch`."""
        return self.user_id == user_id and self.epoch == epoch

    def set_user(self, user: AuthUser) -> None:
        """Set the identity. Switching to a different user drops the old collection."""
        if self.user_id is not None and self.user_id != user.id:
            self.epoch += 1
            self.bookmarks = []
        self.user = user
        self._notify()

    def clear(self) -> None:
        """Back to anonymous with an empty collection. Idempotent."""
        self.user = None
        self.bookmarks = []
        self.epoch += 1
        self._notify()

    def replace_bookmarks(self, records: list[BookmarkRecord]) -> None:
        """Replace the whole collection."""
        self.bookmarks = list(records)
        self._notify()

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """
        Call `listener` after every state change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("state_listener_failed")
