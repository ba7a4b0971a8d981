"""Digest notifier: drains the batch and delivers it.

One drain feeds both channels: an e-mail to the configured recipients and,
optionally, a WeChat text message to a forward target. Delivery failures
are logged and audited, never raised; the relay keeps running.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from webwx_relay.notify.batcher import NotificationBatch
from webwx_relay.notify.rate_limiter import RateLimiter
from webwx_relay.utils.logging_utils import log_action, redact_email
from webwx_relay.utils.timestamps import now_iso
from webwx_relay.utils.uuid_utils import correlation_id
from webwx_relay.wechat.errors import WechatError
from webwx_relay.wechat.forwarder import AmbiguousContactError, WechatForwarder

logger = logging.getLogger(__name__)

DIGEST_SUBJECT = "New WeChat messages"


class MailSender(Protocol):
    def send(self, recipients: list[str], subject: str, body: str) -> Any: ...


def render_digest(lines: list[str], detail: bool = True) -> tuple[str, str]:
    """Subject and body for a digest of ``lines``.

    Without detail the body is empty and the subject carries only the count.
    """
    if detail:
        return DIGEST_SUBJECT, "\n".join(lines)
    noun = "message" if len(lines) == 1 else "messages"
    return f"{len(lines)} new WeChat {noun}", ""


class DigestNotifier:
    """Flushes the notification batch on demand."""

    def __init__(
        self,
        batch: NotificationBatch,
        logs_path: str | Path,
        mailer: MailSender | None = None,
        recipients: list[str] | tuple[str, ...] = (),
        detail: bool = True,
        rate_limiter: RateLimiter | None = None,
        forwarder: WechatForwarder | None = None,
        forward_to: str = "",
    ) -> None:
        self.batch = batch
        self.logs_path = Path(logs_path)
        self.mailer = mailer
        self.recipients = list(recipients)
        self.detail = detail
        self.rate_limiter = rate_limiter or RateLimiter()
        self.forwarder = forwarder
        self.forward_to = forward_to

    @property
    def email_enabled(self) -> bool:
        return self.mailer is not None and bool(self.recipients)

    @property
    def forward_enabled(self) -> bool:
        return self.forwarder is not None and bool(self.forward_to)

    def flush(self) -> int:
        """Drain the batch and deliver it. Returns the number of lines drained.

        Nothing is drained when the batch is empty or the digest rate limit
        is reached; queued lines wait for the next flush.
        """
        if not self.batch:
            return 0

        if self.email_enabled:
            allowed, wait_seconds = self.rate_limiter.check()
            if not allowed:
                logger.info(
                    "Digest rate limit reached (%d/hour), next slot in %ds",
                    self.rate_limiter.max_sends,
                    wait_seconds,
                )
                return 0

        lines = self.batch.drain()
        if not lines:
            return 0

        if self.email_enabled:
            self._send_digest(lines)
        if self.forward_enabled:
            self._forward(lines)
        if not self.email_enabled and not self.forward_enabled:
            logger.debug("No delivery channel configured, dropped %d lines", len(lines))
        return len(lines)

    def alert(self, reason: str) -> bool:
        """E-mail a session-ended alert. Returns True when sent."""
        if not self.email_enabled:
            return False
        subject = f"WeChat session ended: {reason}"
        return self._deliver(subject, "", "session_alert", {"reason": reason[:200]})

    # ── Channels ────────────────────────────────────────────────────

    def _send_digest(self, lines: list[str]) -> None:
        subject, body = render_digest(lines, self.detail)
        parameters = {"lines": len(lines), "detail": self.detail}
        if self._deliver(subject, body, "digest_sent", parameters):
            self.rate_limiter.record_send()

    def _deliver(
        self,
        subject: str,
        body: str,
        action_type: str,
        parameters: dict[str, Any],
    ) -> bool:
        assert self.mailer is not None
        target = ", ".join(redact_email(r) for r in self.recipients)
        cid = correlation_id()
        try:
            self.mailer.send(self.recipients, subject, body)
        except (HttpError, GoogleAuthError, OSError, ValueError) as exc:
            logger.warning("Failed to send e-mail to %s: %s", target, exc)
            self._audit("errors", cid, action_type, target, "failure", parameters, str(exc))
            return False
        except Exception as exc:
            logger.exception("Unexpected error sending e-mail to %s", target)
            self._audit("errors", cid, action_type, target, "failure", parameters, repr(exc))
            return False
        logger.info("Sent %r to %s", subject, target)
        self._audit("actions", cid, action_type, target, "success", parameters)
        return True

    def _forward(self, lines: list[str]) -> None:
        assert self.forwarder is not None
        cid = correlation_id()
        try:
            to_user = self.forwarder.resolve(self.forward_to)
        except AmbiguousContactError as exc:
            logger.warning("Not forwarding, target is ambiguous: %s", exc)
            self._audit("errors", cid, "forward", self.forward_to, "skipped", {}, str(exc))
            return
        if to_user is None:
            logger.warning("Unable to forward, no contact named %r", self.forward_to)
            self._audit("errors", cid, "forward", self.forward_to, "skipped", {}, "not_found")
            return

        try:
            self.forwarder.send_text(to_user, "\n".join(lines))
        except WechatError as exc:
            logger.warning("Failed to forward to %s: %s", self.forward_to, exc)
            self._audit("errors", cid, "forward", self.forward_to, "failure", {}, str(exc))
            return
        logger.info("Forwarded %d lines to %s", len(lines), self.forward_to)
        self._audit("actions", cid, "forward", self.forward_to, "success", {"lines": len(lines)})

    # ── Audit ───────────────────────────────────────────────────────

    def _audit(
        self,
        kind: str,
        cid: str,
        action_type: str,
        target: str,
        result: str,
        parameters: dict[str, Any],
        error: str | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "timestamp": now_iso(),
            "correlation_id": cid,
            "actor": "digest_notifier",
            "action_type": action_type,
            "target": target,
            "result": result,
            "parameters": parameters,
        }
        if error:
            entry["error"] = error[:200]
        try:
            log_action(self.logs_path / kind, entry)
        except OSError:
            logger.exception("Failed to write audit log")
