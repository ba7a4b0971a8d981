"""Authenticated session state.

A ``Session`` exists only after a successful login and lives for the rest
of the process. Login creates it; sync is the only component that mutates
it afterwards, always under ``lock``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from webwx_relay.wechat.models import BaseRequest, ContactDirectory, LoginInfo, Member, SyncKey
from webwx_relay.wechat.transport import Transport

CGI_PATH = "/cgi-bin/mmwebwx-bin"


@dataclass
class Session:
    transport: Transport
    login_info: LoginInfo
    device_id: str
    host: str
    sync_key: SyncKey = field(default_factory=SyncKey)
    user: Member | None = None
    directory: ContactDirectory = field(default_factory=ContactDirectory)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def base_request(self) -> BaseRequest:
        return BaseRequest(
            uin=self.login_info.wxuin,
            sid=self.login_info.wxsid,
            skey=self.login_info.skey,
            device_id=self.device_id,
        )

    def url(self, endpoint: str, host: str | None = None) -> str:
        """Absolute URL of a CGI endpoint on the resolved (or given) host."""
        return f"https://{host or self.host}{CGI_PATH}/{endpoint}"
