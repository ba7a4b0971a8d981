"""WeChat web session: login, long-poll sync, and message dedup."""

from webwx_relay.wechat.errors import (
    DirectoryUnavailableError,
    ProtocolMismatchError,
    ScanTimeoutError,
    SessionInvalidError,
    TransportError,
    UnexpectedStatusError,
    WechatError,
)
from webwx_relay.wechat.login import LoginFlow, LoginState
from webwx_relay.wechat.models import ContactDirectory, Message, PollResult, SyncKey
from webwx_relay.wechat.poller import SyncCheckPoller
from webwx_relay.wechat.session import Session
from webwx_relay.wechat.sync import MessageSync

__all__ = [
    "WechatError",
    "TransportError",
    "ProtocolMismatchError",
    "UnexpectedStatusError",
    "SessionInvalidError",
    "ScanTimeoutError",
    "DirectoryUnavailableError",
    "LoginFlow",
    "LoginState",
    "ContactDirectory",
    "Message",
    "PollResult",
    "SyncKey",
    "SyncCheckPoller",
    "Session",
    "MessageSync",
]
