"""Shared fixtures for the relay tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from webwx_relay.config import RelayConfig
from webwx_relay.wechat.models import ContactDirectory, LoginInfo, Member, SyncKey
from webwx_relay.wechat.session import Session
from webwx_relay.wechat.transport import Transport


@pytest.fixture
def config(tmp_path: Path) -> RelayConfig:
    """Config with no waiting and logs under tmp_path."""
    return RelayConfig(
        scan_attempts=3,
        qr_attempts=2,
        poll_passes=3,
        poll_backoff_seconds=0.0,
        fallback_push_hosts=(),
        loop_delay=0.0,
        notify_interval=3600.0,
        logs_path=str(tmp_path / "logs"),
    )


@pytest.fixture
def transport() -> MagicMock:
    """A Transport double; tests program get_text/post_json/request."""
    return MagicMock(spec=Transport)


@pytest.fixture
def login_info() -> LoginInfo:
    return LoginInfo(
        ret="0",
        message="",
        skey="@crypt_skey",
        wxsid="sid123",
        wxuin="1234567",
        pass_ticket="ticket%2B1",
    )


@pytest.fixture
def session(transport: MagicMock, login_info: LoginInfo) -> Session:
    """A logged-in session on wx.qq.com with a two-contact directory."""
    me = Member("@me", "Me")
    return Session(
        transport=transport,
        login_info=login_info,
        device_id="e123456789012345",
        host="wx.qq.com",
        sync_key=SyncKey(((1, 100), (2, 200))),
        user=me,
        directory=ContactDirectory([Member("@u1", "Alice"), Member("@u2", "Bob"), me]),
    )


def sync_response(
    messages: list[dict[str, Any]] | None = None,
    sync_key: list[tuple[int, int]] | None = None,
    ret: int = 0,
) -> dict[str, Any]:
    """A decoded webwxsync response."""
    pairs = sync_key if sync_key is not None else [(1, 101), (2, 201)]
    return {
        "BaseResponse": {"Ret": ret, "ErrMsg": ""},
        "SyncKey": {"Count": len(pairs), "List": [{"Key": k, "Val": v} for k, v in pairs]},
        "AddMsgCount": len(messages or []),
        "AddMsgList": messages or [],
    }


def raw_message(msg_id: str, from_user: str, content: str = "hi", msg_type: int = 1) -> dict[str, Any]:
    return {
        "MsgId": msg_id,
        "MsgType": msg_type,
        "Content": content,
        "FromUserName": from_user,
    }


@pytest.fixture
def make_sync_response():
    return sync_response


@pytest.fixture
def make_raw_message():
    return raw_message


