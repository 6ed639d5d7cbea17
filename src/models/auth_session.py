"""Persisted OAuth session for a client."""
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class AuthSession(Base, TimestampMixin):
    """
    Tokens for the signed-in user of one client.

    Keyed by a client key so a restarted process can pick its session back up.
    """

    __tablename__ = "auth_sessions"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    provider: Mapped[str] = mapped_column(String(50))
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[int] = mapped_column(
        Integer,
        comment="Unix timestamp when the access token expires",
    )
