"""Error taxonomy for the WeChat web session.

Every failure raised by the session layer derives from ``WechatError`` so
the watcher can decide, by type alone, whether to retry on the next tick,
degrade, or stop.
"""

from __future__ import annotations

BODY_EXCERPT_CHARS = 200


class WechatError(Exception):
    """Base class for all WeChat session errors."""


class TransportError(WechatError):
    """Network failure or unexpected HTTP status. Generally transient."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ProtocolMismatchError(WechatError):
    """Response shape deviates from the expected literal or JSON schema.

    Indicates an upstream API change; not auto-recoverable.
    """

    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(message)
        self.body = body[:BODY_EXCERPT_CHARS]


class UnexpectedStatusError(ProtocolMismatchError):
    """Bootstrap returned something other than the HTTP 301 it must return."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"expected HTTP 301, got {status}", body)
        self.status = status


class SessionInvalidError(WechatError):
    """Server reported a nonzero return code: logged out or logged in elsewhere."""

    def __init__(self, retcode: str, message: str = "") -> None:
        super().__init__(message or f"session invalid (retcode {retcode})")
        self.retcode = retcode


class ScanTimeoutError(WechatError):
    """The QR code was not scanned within the allowed attempts.

    Recoverable by issuing a new UUID and QR code.
    """


class DirectoryUnavailableError(WechatError):
    """The contact directory could not be fetched. Login continues without it."""
