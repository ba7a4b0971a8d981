"""Decoders for the literal-embedded responses of the web endpoints.

The login and sync-check endpoints answer with JavaScript assignments
rather than JSON, and bootstrap answers with a small XML document. The
``ResultDecoder`` protocol lets the parsing strategy change without
touching the login and polling code.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Protocol

from webwx_relay.wechat.errors import ProtocolMismatchError, SessionInvalidError
from webwx_relay.wechat.models import LoginInfo, PollResult

UUID_PATTERN = re.compile(r'window\.QRLogin\.uuid\s*=\s*"([^"]+)"')
REDIRECT_PATTERN = re.compile(r'window\.redirect_uri\s*=\s*"([^"]+)"')
SYNC_CHECK_PATTERN = re.compile(
    r'window\.synccheck\s*=\s*\{\s*retcode\s*:\s*"(\d+)"\s*,\s*selector\s*:\s*"(\d+)"\s*\}'
)

LOGIN_INFO_FIELDS = ("skey", "wxsid", "wxuin", "pass_ticket")


class ResultDecoder(Protocol):
    """Turns raw endpoint bodies into typed results."""

    def decode_uuid(self, body: str) -> str: ...

    def decode_redirect(self, body: str) -> str | None: ...

    def decode_sync_check(self, body: str) -> PollResult: ...

    def decode_login_info(self, body: str) -> LoginInfo: ...


class RegexResultDecoder:
    """Pattern-match decoder for the current web client responses."""

    def decode_uuid(self, body: str) -> str:
        """Extract the login UUID from the ``jslogin`` response.

        Raises:
            ProtocolMismatchError: If the UUID assignment is absent.
        """
        match = UUID_PATTERN.search(body)
        if not match:
            raise ProtocolMismatchError("login UUID not found in response", body)
        return match.group(1)

    def decode_redirect(self, body: str) -> str | None:
        """Redirect URI once the QR code has been scanned and confirmed, else ``None``."""
        match = REDIRECT_PATTERN.search(body)
        return match.group(1) if match else None

    def decode_sync_check(self, body: str) -> PollResult:
        """Extract ``retcode`` and ``selector`` from a sync-check response.

        Raises:
            ProtocolMismatchError: If the response does not have the expected shape.
        """
        match = SYNC_CHECK_PATTERN.search(body)
        if not match:
            raise ProtocolMismatchError("unexpected sync-check response", body)
        return PollResult(retcode=match.group(1), selector=match.group(2))

    def decode_login_info(self, body: str) -> LoginInfo:
        """Parse the bootstrap XML body.

        Raises:
            ProtocolMismatchError: If the XML is malformed or lacks a credential.
            SessionInvalidError: If the server refused the login (``ret`` not 0).
        """
        try:
            root = ET.fromstring(body)
        except ET.ParseError as exc:
            raise ProtocolMismatchError(f"invalid login XML: {exc}", body) from exc

        values = {child.tag: (child.text or "").strip() for child in root}
        ret = values.get("ret", "")
        if ret and ret != "0":
            raise SessionInvalidError(ret, f"login refused: {values.get('message', '')}")

        missing = [name for name in LOGIN_INFO_FIELDS if not values.get(name)]
        if missing:
            raise ProtocolMismatchError(f"login XML missing {', '.join(missing)}", body)

        try:
            isgrayscale = int(values.get("isgrayscale") or 0)
        except ValueError:
            isgrayscale = 0

        return LoginInfo(
            ret=ret or "0",
            message=values.get("message", ""),
            skey=values["skey"],
            wxsid=values["wxsid"],
            wxuin=values["wxuin"],
            pass_ticket=values["pass_ticket"],
            isgrayscale=isgrayscale,
        )
