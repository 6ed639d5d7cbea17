"""Value types exchanged with the remote data gateway."""
import json
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AuthEvent(Enum):
    """Authentication state transitions reported by the backend."""

    SIGNED_IN = "SIGNED_IN"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    SIGNED_OUT = "SIGNED_OUT"


class ChangeEvent(Enum):
    """Row change types carried by the live feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuthUser:
    """Identity returned by the OAuth provider."""

    id: str
    email: str | None = None


@dataclass(frozen=True)
class Session:
    """An authenticated session with the backend."""

    access_token: str
    expires_at: int  # Unix timestamp
    user: AuthUser
    refresh_token: str | None = None
    provider: str = "google"

    @property
    def is_expired(self) -> bool:
        """True once the access token is past its expiry."""
        return self.expires_at <= int(time.time())


@dataclass(frozen=True)
class AuthStateChange:
    """One message from the auth-event stream."""

    event: AuthEvent
    session: Session | None


@dataclass(frozen=True)
class Order:
    """Sort specification for a select."""

    column: str
    ascending: bool = True


@dataclass(frozen=True)
class Change:
    """A committed row change, as published on the live feed."""

    table: str
    event: ChangeEvent
    record: dict[str, Any] = field(default_factory=dict)
    old_record: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Encode for the wire. Datetimes become ISO strings."""
        return json.dumps(
            {
                "table": self.table,
                "event": self.event.value,
                "record": self.record,
                "old_record": self.old_record,
            },
            default=lambda value: value.isoformat() if hasattr(value, "isoformat") else str(value),
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> "Change":
        """Decode a message produced by to_json."""
        payload = json.loads(data)
        return cls(
            table=payload["table"],
            event=ChangeEvent(payload["event"]),
            record=payload.get("record") or {},
            old_record=payload.get("old_record") or {},
        )


@dataclass(frozen=True)
class ChangeFilter:
    """
    Which changes a subscription receives.

    Matches changes on `table` where `column == value` on either the new or the
    old row (deletes only carry the old row). `events` of None means all types.
    """

    table: str
    column: str
    value: Any
    events: frozenset[ChangeEvent] | None = None

    def matches(self, change: Change) -> bool:
        """Check a change against the filter."""
        if change.table != self.table:
            return False
        if self.events is not None and change.event not in self.events:
            return False
        row = change.record or change.old_record
        if self.column not in row:
            return False
        # Values may have crossed a JSON boundary, compare as strings
        return str(row[self.column]) == str(self.value)


@dataclass
class SubscriptionHandle:
    """One open live feed."""

    channel_key: str
    filter: ChangeFilter
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    closed: bool = False


@dataclass
class ListenerHandle:
    """Registration of an auth-state listener; call unsubscribe() to detach."""

    _detach: Callable[[], None]
    active: bool = True

    def unsubscribe(self) -> None:
        """Detach the listener. Safe to call more than once."""
        if self.active:
            self.active = False
            self._detach()


AuthListener = Callable[[AuthEvent, Session | None], Awaitable[None]]
ChangeCallback = Callable[[Change], Awaitable[None]]
