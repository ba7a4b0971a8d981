"""Sends text messages from the logged-in account."""

from __future__ import annotations

import logging

from webwx_relay.utils.uuid_utils import client_msg_id
from webwx_relay.wechat.errors import ProtocolMismatchError
from webwx_relay.wechat.models import MessageType
from webwx_relay.wechat.session import Session

logger = logging.getLogger(__name__)


class AmbiguousContactError(LookupError):
    """More than one contact carries the requested nickname."""


class WechatForwarder:
    def __init__(self, session: Session) -> None:
        self.session = session

    def resolve(self, target: str) -> str | None:
        """Map a forward target to a user identifier.

        An exact identifier wins; otherwise the nickname must be unique.

        Raises:
            AmbiguousContactError: If several contacts share the nickname.
        """
        directory = self.session.directory
        if target in directory:
            return target
        matches = directory.find_by_name(target)
        if len(matches) > 1:
            msg = f"{len(matches)} contacts are named {target!r}"
            raise AmbiguousContactError(msg)
        return matches[0] if matches else None

    def send_text(self, to_user: str, content: str) -> str:
        """Send ``content`` to ``to_user`` and return the local message id.

        Raises:
            TransportError: On network failure or non-200 status.
            ProtocolMismatchError: If the server rejects the message.
        """
        session = self.session
        msg_id = client_msg_id()
        from_user = session.user.user_name if session.user else ""
        data = session.transport.post_json(
            session.url("webwxsendmsg"),
            {
                "BaseRequest": session.base_request.to_json(),
                "Msg": {
                    "Type": int(MessageType.TEXT),
                    "Content": content,
                    "FromUserName": from_user,
                    "ToUserName": to_user,
                    "LocalID": msg_id,
                    "ClientMsgId": msg_id,
                },
            },
            params={"pass_ticket": session.login_info.pass_ticket},
        )
        base = data.get("BaseResponse")
        if not isinstance(base, dict) or str(base.get("Ret")) != "0":
            raise ProtocolMismatchError("webwxsendmsg was rejected", repr(base))
        logger.debug("Sent message %s to %s", msg_id, to_user)
        return msg_id
