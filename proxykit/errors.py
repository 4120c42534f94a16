"""
Errors raised by the SDK.

Every failure surfaced to the host is a ProxyKitError. The `kind` attribute
groups them the same way the loopback API client reasons about them.
"""
from __future__ import annotations

from http import HTTPStatus


class ProxyKitError(Exception):
    """Base class for all SDK errors."""
    kind = "internalError"


class ConnectionFailure(ProxyKitError):
    """The loopback server could not be reached or the connection broke."""
    kind = "connectionFailure"


class CouldNotConnect(ConnectionFailure):
    """Nothing is listening on the loopback port: the proxy is not running."""


class HttpStatusError(ProxyKitError):
    """The proxy answered with a status code outside the 2xx range."""
    kind = "httpStatus"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"{status_code} {_reason_phrase(status_code)}")

    @property
    def unauthorized(self) -> bool:
        """True when the access token was rejected and the user must re-authorize."""
        return self.status_code == 403

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HttpStatusError):
            return NotImplemented
        return self.status_code == other.status_code

    def __hash__(self) -> int:
        return hash((type(self), self.status_code))


class DecodeError(ProxyKitError):
    """The response body did not match the expected shape."""
    kind = "decodeError"


class InternalError(ProxyKitError):
    """A request could not be built, or no more specific reason is available."""
    kind = "internalError"

    def __init__(self, message: str = "proxykit internal error"):
        super().__init__(message)


class RequestCancelled(ProxyKitError):
    """An in-flight request was aborted by its issuer."""
    kind = "cancelled"


def _reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown Status"
