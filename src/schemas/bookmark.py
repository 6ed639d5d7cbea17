"""Pydantic schemas for bookmark records and intents."""
from datetime import datetime
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, field_validator

# Links rendered into the page must not run script when clicked
ALLOWED_URL_SCHEMES = ("http", "https")


def is_web_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    parts = urlsplit(url)
    return parts.scheme.lower() in ALLOWED_URL_SCHEMES and bool(parts.netloc)


class BookmarkRecord(BaseModel):
    """
    A bookmark row as seen by the client.

    Built from gateway rows (plain dicts) or ORM objects. The collection the UI
    renders is always a list of these, replaced wholesale on every refresh.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    title: str
    url: str
    user_id: str
    created_at: datetime | None = None


class BookmarkCreate(BaseModel):
    """
    Schema for the add-bookmark intent.

    Empty values are accepted; the store treats them as a
    no-op without a round trip. A non-empty URL must be http(s).
    """

    title: str = ""
    url: str = ""

    @field_validator("title", "url")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if v and not is_web_url(v):
            raise ValueError("URL must start with http:// or https://")
        return v


class IntentResponse(BaseModel):
    """Whether an intent was forwarded to the backend successfully."""

    accepted: bool
