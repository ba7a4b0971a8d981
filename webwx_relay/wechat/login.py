"""Login state machine: turns a fresh client into an authenticated Session.

UUID -> QR -> wait for scan -> redirect -> bootstrap -> init -> directory.
Each step either advances ``state`` or raises; any raise leaves the flow
in ``LoginState.FAILED``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from webwx_relay.config import RelayConfig
from webwx_relay.utils.timestamps import now_millis
from webwx_relay.utils.uuid_utils import device_id as new_device_id
from webwx_relay.wechat.decoders import RegexResultDecoder, ResultDecoder
from webwx_relay.wechat.errors import (
    DirectoryUnavailableError,
    ProtocolMismatchError,
    ScanTimeoutError,
    SessionInvalidError,
    TransportError,
    UnexpectedStatusError,
    WechatError,
)
from webwx_relay.wechat.models import ContactDirectory, LoginInfo, Member, SyncKey
from webwx_relay.wechat.session import Session
from webwx_relay.wechat.transport import Transport

logger = logging.getLogger(__name__)

QrCallback = Callable[[str, bytes], None]


class LoginState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    UUID_OBTAINED = "uuid_obtained"
    QR_ISSUED = "qr_issued"
    AWAITING_SCAN = "awaiting_scan"
    REDIRECTED = "redirected"
    BOOTSTRAPPED = "bootstrapped"
    READY = "ready"
    FAILED = "failed"


class LoginFlow:
    """Runs the QR login handshake against the web login host."""

    def __init__(
        self,
        config: RelayConfig,
        transport: Transport | None = None,
        decoder: ResultDecoder | None = None,
    ) -> None:
        self.config = config
        self.transport = transport or Transport(config)
        self.decoder = decoder or RegexResultDecoder()
        self.state = LoginState.UNAUTHENTICATED
        self.uuid: str | None = None

    def _advance(self, state: LoginState) -> None:
        logger.debug("Login state: %s -> %s", self.state.value, state.value)
        self.state = state

    @property
    def _login_base(self) -> str:
        return f"https://{self.config.login_host}"

    # ── Steps ───────────────────────────────────────────────────────

    def obtain_uuid(self) -> str:
        """Request a login ticket.

        Raises:
            TransportError: On network failure or non-200 status.
            ProtocolMismatchError: If the response carries no UUID.
        """
        body = self.transport.get_text(
            f"{self._login_base}/jslogin",
            params={
                "appid": self.config.app_id,
                "fun": "new",
                "lang": self.config.lang,
                "_": now_millis(),
            },
        )
        self.uuid = self.decoder.decode_uuid(body)
        self._advance(LoginState.UUID_OBTAINED)
        logger.info("Obtained login UUID %s", self.uuid)
        return self.uuid

    def issue_qr(self, uuid: str, on_qr: QrCallback) -> bytes:
        """Download the QR image for ``uuid`` and hand it to ``on_qr``."""
        image = self.transport.get_bytes(
            f"{self._login_base}/qrcode/{uuid}",
            params={"t": "webwx"},
        )
        on_qr(uuid, image)
        self._advance(LoginState.QR_ISSUED)
        return image

    def await_scan(self, uuid: str) -> str:
        """Poll the scan status until a redirect URI appears.

        Bounded by ``config.scan_attempts``; each attempt is one long request
        held by the server, so there is no extra delay between attempts.

        Raises:
            ScanTimeoutError: If no redirect URI arrived in time.
        """
        self._advance(LoginState.AWAITING_SCAN)
        url = f"{self._login_base}/cgi-bin/mmwebwx-bin/login"
        for attempt in range(1, self.config.scan_attempts + 1):
            try:
                body = self.transport.get_text(
                    url,
                    params={"uuid": uuid, "tip": 1, "_": now_millis()},
                    expected_status=None,
                )
            except TransportError as exc:
                logger.warning("Scan status check failed (attempt %d): %s", attempt, exc)
                continue
            redirect_uri = self.decoder.decode_redirect(body)
            if redirect_uri:
                self._advance(LoginState.REDIRECTED)
                logger.info("QR code scanned and confirmed")
                return redirect_uri
            logger.debug("Waiting for scan (attempt %d/%d)", attempt, self.config.scan_attempts)

        msg = f"QR code not scanned after {self.config.scan_attempts} attempts"
        raise ScanTimeoutError(msg)

    def bootstrap(self, redirect_uri: str) -> tuple[LoginInfo, str]:
        """Exchange the redirect URI for credentials.

        Returns:
            The login credentials and the resolved web host.

        Raises:
            UnexpectedStatusError: If the response is not HTTP 301.
            ProtocolMismatchError: If the XML body lacks credentials.
            SessionInvalidError: If the server refused the login.
        """
        resp = self.transport.request(
            "GET",
            redirect_uri,
            allow_redirects=False,
            expected_status=None,
        )
        body = resp.content.decode("utf-8", "replace")
        if resp.status_code != 301:
            raise UnexpectedStatusError(resp.status_code, body)

        host = urlsplit(redirect_uri).hostname
        if not host:
            raise ProtocolMismatchError("redirect URI has no host", redirect_uri)

        login_info = self.decoder.decode_login_info(body)
        self._advance(LoginState.BOOTSTRAPPED)
        logger.info("Bootstrapped session on %s (uin %s)", host, login_info.wxuin)
        return login_info, host

    def init_session(self, login_info: LoginInfo, host: str) -> Session:
        """Post the init request and build the Session with its first cursor.

        Raises:
            SessionInvalidError: If ``BaseResponse.Ret`` is nonzero.
            ProtocolMismatchError: If the response has no ``SyncKey``.
        """
        session = Session(
            transport=self.transport,
            login_info=login_info,
            device_id=new_device_id(),
            host=host,
        )
        data = self.transport.post_json(
            session.url("webwxinit"),
            {"BaseRequest": session.base_request.to_json()},
            params={
                "pass_ticket": login_info.pass_ticket,
                "skey": login_info.skey,
                "r": now_millis(),
            },
        )
        _check_base_response(data, "webwxinit")
        session.sync_key = SyncKey.from_json(data.get("SyncKey"))
        if isinstance(data.get("User"), dict):
            session.user = Member.from_json(data["User"])
        return session

    def fetch_directory(self, session: Session) -> ContactDirectory:
        """Fetch the contact list, merged with the logged-in user.

        Raises:
            DirectoryUnavailableError: On any transport or shape failure.
        """
        try:
            data = self.transport.post_json(
                session.url("webwxgetcontact"),
                {"BaseRequest": session.base_request.to_json()},
                params={
                    "pass_ticket": session.login_info.pass_ticket,
                    "skey": session.login_info.skey,
                    "r": now_millis(),
                },
            )
            _check_base_response(data, "webwxgetcontact")
            raw_members = data.get("MemberList")
            if not isinstance(raw_members, list):
                raise ProtocolMismatchError("webwxgetcontact has no MemberList", repr(data))
        except WechatError as exc:
            raise DirectoryUnavailableError(str(exc)) from exc

        members = [Member.from_json(m) for m in raw_members if isinstance(m, dict)]
        if session.user is not None:
            members.append(session.user)
        return ContactDirectory(members)

    # ── Whole flow ──────────────────────────────────────────────────

    def login(self, on_qr: QrCallback) -> Session:
        """Run every step and return a ready Session.

        A failed directory fetch degrades to a directory holding only the
        logged-in user. Every other failure propagates.
        """
        try:
            uuid = self.obtain_uuid()
            self.issue_qr(uuid, on_qr)
            redirect_uri = self.await_scan(uuid)
            login_info, host = self.bootstrap(redirect_uri)
            session = self.init_session(login_info, host)
        except WechatError:
            self._advance(LoginState.FAILED)
            raise

        try:
            session.directory = self.fetch_directory(session)
        except DirectoryUnavailableError as exc:
            logger.warning("Contact directory unavailable, using raw identifiers: %s", exc)
            session.directory = ContactDirectory([session.user] if session.user else [])

        self._advance(LoginState.READY)
        logger.info(
            "Logged in as %s with %d contacts",
            session.user.nick_name if session.user else login_info.wxuin,
            len(session.directory),
        )
        return session


def _check_base_response(data: dict[str, Any], endpoint: str) -> None:
    base = data.get("BaseResponse")
    if not isinstance(base, dict) or "Ret" not in base:
        raise ProtocolMismatchError(f"{endpoint} response has no BaseResponse", repr(data))
    ret = str(base["Ret"])
    if ret != "0":
        raise SessionInvalidError(ret, f"{endpoint} failed: {base.get('ErrMsg', '')}")
