"""Errors raised by the remote data gateway."""


class GatewayError(Exception):
    """Base class for failures talking to the backend."""


class AuthInitiationError(GatewayError):
    """Raised when a sign-in, code exchange, or sign-out request fails."""


class RemoteFetchError(GatewayError):
    """Raised when a read against the backend fails."""


class RemoteWriteError(GatewayError):
    """Raised when an insert or delete against the backend fails."""


class SubscriptionError(GatewayError):
    """Raised when a live change feed cannot be established."""
