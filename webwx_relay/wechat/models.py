"""Data model for the WeChat web protocol.

Wire field names (``UserName``, ``SyncKey``, ``BaseRequest``...) are kept at
the JSON boundary only; everything inside the package uses the dataclasses
below.
"""

from __future__ import annotations

import html
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from webwx_relay.wechat.errors import ProtocolMismatchError

GROUP_PREFIX = "@@"


class MessageType(IntEnum):
    """Message type codes the relay knows how to show."""

    TEXT = 1
    PICTURE = 3
    VOICE = 34
    VIDEO = 43
    EMOTICON = 47
    SHORT_VIDEO = 62


DISPLAYABLE_TYPES = frozenset(int(t) for t in MessageType)

PLACEHOLDERS = {
    MessageType.PICTURE: "[Picture]",
    MessageType.VOICE: "[Voice]",
    MessageType.VIDEO: "[Video]",
    MessageType.EMOTICON: "[Sticker]",
    MessageType.SHORT_VIDEO: "[Short video]",
}


@dataclass(frozen=True)
class LoginInfo:
    """Credentials returned by the bootstrap redirect."""

    ret: str
    message: str
    skey: str
    wxsid: str
    wxuin: str
    pass_ticket: str
    isgrayscale: int = 0


@dataclass(frozen=True)
class BaseRequest:
    """Credential block echoed in every JSON request body."""

    uin: str
    sid: str
    skey: str
    device_id: str

    def to_json(self) -> dict[str, str]:
        return {
            "Uin": self.uin,
            "Sid": self.sid,
            "Skey": self.skey,
            "DeviceID": self.device_id,
        }


@dataclass(frozen=True)
class SyncKey:
    """Server-issued sync cursor: ordered ``(key, value)`` counters.

    Entries must be echoed back in the order received; ``str()`` renders the
    ``"k_v|k_v"`` form the sync-check endpoint expects.
    """

    entries: tuple[tuple[int, int], ...] = ()

    def __str__(self) -> str:
        return "|".join(f"{key}_{val}" for key, val in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_json(self) -> dict[str, Any]:
        return {
            "Count": len(self.entries),
            "List": [{"Key": key, "Val": val} for key, val in self.entries],
        }

    @classmethod
    def from_json(cls, data: Any) -> SyncKey:
        """Build a cursor from the ``SyncKey`` object of a JSON response.

        Raises:
            ProtocolMismatchError: If the object lacks a well-formed ``List``.
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("List"), list):
            raise ProtocolMismatchError("SyncKey missing or malformed", repr(data))
        try:
            entries = tuple((int(item["Key"]), int(item["Val"])) for item in data["List"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolMismatchError(f"bad SyncKey entry: {exc}", repr(data)) from exc
        return cls(entries)


@dataclass(frozen=True)
class Member:
    """A contact as listed by the server."""

    user_name: str
    nick_name: str = ""

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Member:
        return cls(
            user_name=str(data.get("UserName", "")),
            nick_name=html.unescape(str(data.get("NickName", ""))),
        )


class ContactDirectory:
    """Read-only mapping from user identifier to display name."""

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._names: dict[str, str] = {}
        for member in members:
            if member.user_name:
                self._names[member.user_name] = member.nick_name

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, user_name: object) -> bool:
        return user_name in self._names

    def display_name(self, user_name: str) -> str:
        """Nickname for ``user_name``, or the raw identifier when unknown or blank."""
        return self._names.get(user_name) or user_name

    def find_by_name(self, nick_name: str) -> list[str]:
        """All identifiers whose nickname equals ``nick_name``, in directory order.

        Nicknames are not unique; callers must handle more than one match.
        """
        return [user for user, nick in self._names.items() if nick == nick_name]


@dataclass(frozen=True)
class Message:
    """A received message, annotated with its sender's display name."""

    msg_id: str
    msg_type: int
    from_user: str
    sender_name: str
    content: str

    @property
    def is_group(self) -> bool:
        return self.from_user.startswith(GROUP_PREFIX)

    @property
    def is_displayable(self) -> bool:
        return self.msg_type in DISPLAYABLE_TYPES

    @property
    def text(self) -> str:
        """Content for text messages, a bracketed placeholder for media."""
        if self.msg_type == MessageType.TEXT:
            return self.content
        return PLACEHOLDERS.get(self.msg_type, self.content)

    def render(self) -> str:
        return f"{self.sender_name}: {self.text}"

    @classmethod
    def from_json(cls, data: Mapping[str, Any], directory: ContactDirectory) -> Message:
        """Build a message from one ``AddMsgList`` entry.

        Raises:
            ProtocolMismatchError: If ``MsgId`` or ``MsgType`` is missing or malformed.
        """
        try:
            msg_id = str(data["MsgId"])
            msg_type = int(data["MsgType"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolMismatchError(f"bad AddMsgList entry: {exc}", repr(data)) from exc
        from_user = str(data.get("FromUserName", ""))
        return cls(
            msg_id=msg_id,
            msg_type=msg_type,
            from_user=from_user,
            sender_name=directory.display_name(from_user),
            content=html.unescape(str(data.get("Content", ""))),
        )


@dataclass(frozen=True)
class PollResult:
    """Outcome of one sync-check.

    retcode: 0 success, 1100 logged out, 1101 logged in elsewhere.
    selector: 0 nothing new, anything else means a fetch is required.
    """

    retcode: str
    selector: str
    host: str = ""

    @property
    def ok(self) -> bool:
        return self.retcode == "0"

    @property
    def has_data(self) -> bool:
        return self.selector != "0"


@dataclass
class SyncBatch:
    """Decoded ``webwxsync`` response."""

    sync_key: SyncKey
    raw_messages: list[dict[str, Any]] = field(default_factory=list)
