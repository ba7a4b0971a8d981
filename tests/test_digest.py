"""Tests for the digest notifier (webwx_relay.notify.digest)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from webwx_relay.notify.batcher import NotificationBatch
from webwx_relay.notify.digest import DigestNotifier, render_digest
from webwx_relay.notify.rate_limiter import RateLimiter
from webwx_relay.utils.logging_utils import read_recent_logs
from webwx_relay.wechat.errors import TransportError
from webwx_relay.wechat.forwarder import AmbiguousContactError, WechatForwarder


@pytest.fixture()
def batch() -> NotificationBatch:
    batch = NotificationBatch()
    batch.append("Alice: hi")
    batch.append("Bob: [Picture]")
    return batch


@pytest.fixture()
def mailer() -> MagicMock:
    mailer = MagicMock()
    mailer.send.return_value = {"message_id": "m1", "thread_id": "t1"}
    return mailer


@pytest.fixture()
def notifier(batch: NotificationBatch, mailer: MagicMock, tmp_path: Path) -> DigestNotifier:
    return DigestNotifier(
        batch,
        logs_path=tmp_path / "logs",
        mailer=mailer,
        recipients=["me@example.com", "you@example.com"],
    )


class TestRenderDigest:
    def test_detail_lists_every_line(self) -> None:
        assert render_digest(["Alice: hi", "Bob: yo"]) == (
            "New WeChat messages",
            "Alice: hi\nBob: yo",
        )

    def test_no_detail_gives_count_only(self) -> None:
        assert render_digest(["Alice: hi", "Bob: yo"], detail=False) == (
            "2 new WeChat messages",
            "",
        )
        assert render_digest(["Alice: hi"], detail=False)[0] == "1 new WeChat message"


class TestFlush:
    def test_sends_one_message_to_all_recipients(
        self, notifier: DigestNotifier, mailer: MagicMock, batch: NotificationBatch
    ) -> None:
        assert notifier.flush() == 2

        mailer.send.assert_called_once_with(
            ["me@example.com", "you@example.com"],
            "New WeChat messages",
            "Alice: hi\nBob: [Picture]",
        )
        assert len(batch) == 0

    def test_empty_batch_sends_nothing(self, mailer: MagicMock, tmp_path: Path) -> None:
        notifier = DigestNotifier(
            NotificationBatch(), tmp_path, mailer=mailer, recipients=["me@example.com"]
        )

        assert notifier.flush() == 0
        mailer.send.assert_not_called()

    def test_no_detail(
        self, batch: NotificationBatch, mailer: MagicMock, tmp_path: Path
    ) -> None:
        notifier = DigestNotifier(
            batch, tmp_path, mailer=mailer, recipients=["me@example.com"], detail=False
        )

        notifier.flush()

        mailer.send.assert_called_once_with(["me@example.com"], "2 new WeChat messages", "")

    def test_rate_limited_flush_keeps_lines(
        self, batch: NotificationBatch, mailer: MagicMock, tmp_path: Path
    ) -> None:
        limiter = RateLimiter(max_sends=1)
        limiter.record_send()
        notifier = DigestNotifier(
            batch, tmp_path, mailer=mailer, recipients=["me@example.com"], rate_limiter=limiter
        )

        assert notifier.flush() == 0

        mailer.send.assert_not_called()
        assert len(batch) == 2

    def test_successful_send_is_counted_and_audited(
        self, notifier: DigestNotifier, tmp_path: Path
    ) -> None:
        notifier.flush()

        assert notifier.rate_limiter.current_count == 1
        entries = read_recent_logs(tmp_path / "logs" / "actions")
        assert entries[0]["action_type"] == "digest_sent"
        assert entries[0]["result"] == "success"
        assert entries[0]["target"] == "m***@example.com, y***@example.com"
        assert entries[0]["parameters"] == {"lines": 2, "detail": True}

    @pytest.mark.parametrize(
        "error",
        [RefreshError("invalid_grant"), RuntimeError("httplib2 server not found")],
    )
    def test_auth_and_unexpected_failures_are_contained(
        self, notifier: DigestNotifier, mailer: MagicMock, tmp_path: Path, error: Exception
    ) -> None:
        mailer.send.side_effect = error

        assert notifier.flush() == 2

        entries = read_recent_logs(tmp_path / "logs" / "errors")
        assert entries[0]["action_type"] == "digest_sent"
        assert entries[0]["result"] == "failure"

        mailer.send.side_effect = None
        notifier.batch.append("Carol: later")

        assert notifier.flush() == 1
        assert mailer.send.call_args.args[2] == "Carol: later"

    def test_mail_failure_is_logged_not_raised(
        self, notifier: DigestNotifier, mailer: MagicMock, tmp_path: Path
    ) -> None:
        resp = MagicMock()
        resp.status = 400
        mailer.send.side_effect = HttpError(resp=resp, content=b"bad request")

        assert notifier.flush() == 2

        assert notifier.rate_limiter.current_count == 0
        entries = read_recent_logs(tmp_path / "logs" / "errors")
        assert entries[0]["result"] == "failure"
        assert "error" in entries[0]

    def test_without_channels_lines_are_discarded(
        self, batch: NotificationBatch, tmp_path: Path
    ) -> None:
        notifier = DigestNotifier(batch, tmp_path)

        assert notifier.flush() == 2
        assert len(batch) == 0


class TestForward:
    @pytest.fixture()
    def forwarder(self) -> MagicMock:
        forwarder = MagicMock(spec=WechatForwarder)
        forwarder.resolve.return_value = "@boss"
        return forwarder

    def test_one_drain_feeds_both_channels(
        self,
        batch: NotificationBatch,
        mailer: MagicMock,
        forwarder: MagicMock,
        tmp_path: Path,
    ) -> None:
        notifier = DigestNotifier(
            batch,
            tmp_path,
            mailer=mailer,
            recipients=["me@example.com"],
            forwarder=forwarder,
            forward_to="Boss",
        )

        notifier.flush()

        mailer.send.assert_called_once()
        forwarder.resolve.assert_called_once_with("Boss")
        forwarder.send_text.assert_called_once_with("@boss", "Alice: hi\nBob: [Picture]")

    def test_ambiguous_target_is_skipped(
        self, batch: NotificationBatch, forwarder: MagicMock, tmp_path: Path
    ) -> None:
        forwarder.resolve.side_effect = AmbiguousContactError("2 contacts are named 'Boss'")
        notifier = DigestNotifier(batch, tmp_path, forwarder=forwarder, forward_to="Boss")

        assert notifier.flush() == 2

        forwarder.send_text.assert_not_called()
        entries = read_recent_logs(tmp_path / "errors")
        assert entries[0]["action_type"] == "forward"
        assert entries[0]["result"] == "skipped"

    def test_unknown_target_is_skipped(
        self, batch: NotificationBatch, forwarder: MagicMock, tmp_path: Path
    ) -> None:
        forwarder.resolve.return_value = None
        notifier = DigestNotifier(batch, tmp_path, forwarder=forwarder, forward_to="Nobody")

        notifier.flush()

        forwarder.send_text.assert_not_called()
        assert read_recent_logs(tmp_path / "errors")[0]["error"] == "not_found"

    def test_send_failure_is_logged_not_raised(
        self, batch: NotificationBatch, forwarder: MagicMock, tmp_path: Path
    ) -> None:
        forwarder.send_text.side_effect = TransportError("down")
        notifier = DigestNotifier(batch, tmp_path, forwarder=forwarder, forward_to="Boss")

        notifier.flush()

        assert read_recent_logs(tmp_path / "errors")[0]["result"] == "failure"


class TestAlert:
    def test_alert_subject_carries_reason(
        self, notifier: DigestNotifier, mailer: MagicMock
    ) -> None:
        assert notifier.alert("session invalidated (retcode 1101)") is True

        mailer.send.assert_called_once_with(
            ["me@example.com", "you@example.com"],
            "WeChat session ended: session invalidated (retcode 1101)",
            "",
        )

    def test_alert_without_mailer(self, tmp_path: Path) -> None:
        notifier = DigestNotifier(NotificationBatch(), tmp_path)

        assert notifier.alert("gone") is False
