"""Remote data gateway: the backend the sync controller talks to."""
from services.gateway.client import BackendGateway, GatewayFactory
from services.gateway.protocol import RemoteGateway
from services.gateway.rows import BOOKMARKS_TABLE
from services.gateway.types import (
    AuthEvent,
    AuthStateChange,
    AuthUser,
    Change,
    ChangeEvent,
    ChangeFilter,
    ListenerHandle,
    Order,
    Session,
    SubscriptionHandle,
)

__all__ = [
    "BOOKMARKS_TABLE",
    "AuthEvent",
    "AuthStateChange",
    "AuthUser",
    "BackendGateway",
    "Change",
    "ChangeEvent",
    "ChangeFilter",
    "GatewayFactory",
    "ListenerHandle",
    "Order",
    "RemoteGateway",
    "Session",
    "SubscriptionHandle",
]
