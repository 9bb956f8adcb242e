"""Error taxonomy shared by the storefront core, gateway and views."""

from typing import Optional


class StorefrontError(Exception):
    """Base class for every error the storefront surfaces to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class AuthenticationError(StorefrontError):
    """Bad credentials or an unusable login response."""


class AuthorizationError(StorefrontError):
    """A guard predicate denied the action; raised before any network call."""


class ValidationError(StorefrontError):
    """Input rejected locally, e.g. an empty product name or a zero quantity."""


class SessionExpiredError(StorefrontError):
    """The session reached its expiry; the store has already logged out."""


class OperationInProgressError(StorefrontError):
    """Another mutation on the same resource has not finished yet."""


class RemoteError(StorefrontError):
    """A failure reported by the gateway or by the transport underneath it."""

    def __init__(
        self, message: str, status: Optional[int] = None, code: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class GatewayTimeoutError(RemoteError):
    """The gateway did not answer within the configured timeout."""
