"""Tests for WechatForwarder (webwx_relay.wechat.forwarder)."""

from __future__ import annotations

import pytest

from webwx_relay.wechat.errors import ProtocolMismatchError
from webwx_relay.wechat.forwarder import AmbiguousContactError, WechatForwarder
from webwx_relay.wechat.models import ContactDirectory, Member
from webwx_relay.wechat.session import Session


@pytest.fixture()
def forwarder(session: Session) -> WechatForwarder:
    session.directory = ContactDirectory(
        [Member("@u1", "Alice"), Member("@u2", "Sam"), Member("@u3", "Sam"), Member("@me", "Me")]
    )
    return WechatForwarder(session)


class TestResolve:
    def test_unique_nickname(self, forwarder: WechatForwarder) -> None:
        assert forwarder.resolve("Alice") == "@u1"

    def test_exact_identifier_wins(self, forwarder: WechatForwarder) -> None:
        assert forwarder.resolve("@u2") == "@u2"

    def test_shared_nickname_is_ambiguous(self, forwarder: WechatForwarder) -> None:
        with pytest.raises(AmbiguousContactError, match="2 contacts"):
            forwarder.resolve("Sam")

    def test_unknown(self, forwarder: WechatForwarder) -> None:
        assert forwarder.resolve("Nobody") is None


class TestSendText:
    def test_posts_text_message(self, forwarder: WechatForwarder, session: Session) -> None:
        session.transport.post_json.return_value = {"BaseResponse": {"Ret": 0}, "MsgID": "9"}

        msg_id = forwarder.send_text("@u1", "Alice: hi")

        url, body = session.transport.post_json.call_args.args
        assert url == "https://wx.qq.com/cgi-bin/mmwebwx-bin/webwxsendmsg"
        assert body["Msg"]["Type"] == 1
        assert body["Msg"]["Content"] == "Alice: hi"
        assert body["Msg"]["FromUserName"] == "@me"
        assert body["Msg"]["ToUserName"] == "@u1"
        assert body["Msg"]["ClientMsgId"] == msg_id
        assert session.transport.post_json.call_args.kwargs["params"] == {
            "pass_ticket": "ticket%2B1"
        }

    def test_rejected_message_raises(self, forwarder: WechatForwarder, session: Session) -> None:
        session.transport.post_json.return_value = {"BaseResponse": {"Ret": 1205}}

        with pytest.raises(ProtocolMismatchError):
            forwarder.send_text("@u1", "hi")
