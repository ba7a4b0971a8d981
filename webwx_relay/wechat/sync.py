"""Message sync and dedup.

Fetches the message batch a sync-check announced, advances the cursor,
drops non-displayable types and redeliveries, and queues one-to-one
messages for the next digest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from webwx_relay.notify.batcher import NotificationBatch
from webwx_relay.utils.timestamps import now_millis
from webwx_relay.wechat.errors import ProtocolMismatchError
from webwx_relay.wechat.models import Message, SyncBatch, SyncKey
from webwx_relay.wechat.session import Session

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """What one fetch did with the messages it received."""

    queued: list[Message] = field(default_factory=list)
    group: list[Message] = field(default_factory=list)
    duplicates: int = 0
    filtered: int = 0

    @property
    def new_messages(self) -> list[Message]:
        return self.queued + self.group


class MessageSync:
    """Fetches ``webwxsync`` batches for one session."""

    def __init__(self, session: Session, batch: NotificationBatch) -> None:
        self.session = session
        self.batch = batch
        self.seen_ids: set[str] = set()

    def fetch(self) -> SyncBatch:
        """Fetch pending messages and replace the session cursor.

        The cursor advances even when no messages arrive. On any error the
        cursor is left untouched.

        Raises:
            TransportError: On network failure or non-200 status.
            ProtocolMismatchError: On a nonzero ``BaseResponse.Ret`` or a
                response without ``SyncKey``.
        """
        session = self.session
        with session.lock:
            data = session.transport.post_json(
                session.url("webwxsync"),
                {
                    "BaseRequest": session.base_request.to_json(),
                    "SyncKey": session.sync_key.to_json(),
                    "rr": now_millis(),
                },
                params={
                    "sid": session.login_info.wxsid,
                    "skey": session.login_info.skey,
                    "pass_ticket": session.login_info.pass_ticket,
                },
            )
            base = data.get("BaseResponse")
            if not isinstance(base, dict) or str(base.get("Ret")) != "0":
                raise ProtocolMismatchError("webwxsync returned an error", repr(base))
            sync_key = SyncKey.from_json(data.get("SyncKey"))
            raw_messages = data.get("AddMsgList") or []
            if not isinstance(raw_messages, list):
                raise ProtocolMismatchError("webwxsync AddMsgList is not a list", repr(data))
            session.sync_key = sync_key

        return SyncBatch(sync_key=sync_key, raw_messages=raw_messages)

    def process(self, batch: SyncBatch) -> SyncReport:
        """Classify, dedup and queue the messages of one fetched batch."""
        report = SyncReport()
        for raw in batch.raw_messages:
            try:
                msg = Message.from_json(raw, self.session.directory)
            except ProtocolMismatchError as exc:
                logger.warning("Skipping malformed message: %s", exc)
                report.filtered += 1
                continue

            if not msg.is_displayable:
                logger.debug("Skipping message %s of type %d", msg.msg_id, msg.msg_type)
                report.filtered += 1
                continue

            if msg.msg_id in self.seen_ids:
                report.duplicates += 1
                continue
            self.seen_ids.add(msg.msg_id)

            logger.info("%s", msg.render())
            if msg.is_group:
                report.group.append(msg)
                continue

            self.batch.append(msg.render())
            report.queued.append(msg)

        return report

    def sync(self) -> SyncReport:
        """Fetch and process one batch."""
        report = self.process(self.fetch())
        if report.new_messages:
            logger.debug(
                "Sync: %d queued, %d group, %d duplicates, %d filtered",
                len(report.queued),
                len(report.group),
                report.duplicates,
                report.filtered,
            )
        return report
