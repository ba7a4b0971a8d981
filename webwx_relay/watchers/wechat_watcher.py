"""WeChat watcher - relays new WeChat web messages as e-mail digests.

Logs in by QR code, then long-polls the push hosts forever. New one-to-one
messages are batched and sent every notify interval to the configured
recipients (Gmail API), and optionally forwarded to a WeChat contact.
The process exits when the session is invalidated.

Usage:
    # Authorize the Gmail sender (first-time setup)
    uv run python -m webwx_relay --auth-only

    # Relay to an address; scan wechat_qr.png with the phone app
    uv run python -m webwx_relay --to me@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from webwx_relay.config import DEFAULT_CONFIG_PATH, RelayConfig, load_config
from webwx_relay.notify.batcher import NotificationBatch
from webwx_relay.notify.digest import DigestNotifier, MailSender
from webwx_relay.notify.gmail_client import GmailSender
from webwx_relay.notify.rate_limiter import RateLimiter
from webwx_relay.utils.logging_utils import log_action
from webwx_relay.utils.timestamps import now_iso
from webwx_relay.utils.uuid_utils import correlation_id
from webwx_relay.watchers.base_watcher import BaseWatcher
from webwx_relay.wechat.errors import ScanTimeoutError, SessionInvalidError, WechatError
from webwx_relay.wechat.forwarder import WechatForwarder
from webwx_relay.wechat.login import LoginFlow, QrCallback
from webwx_relay.wechat.models import Message
from webwx_relay.wechat.poller import SyncCheckPoller
from webwx_relay.wechat.session import Session
from webwx_relay.wechat.sync import MessageSync
from webwx_relay.wechat.transport import Transport

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_SESSION_INVALID = 2


class WechatWatcher(BaseWatcher):
    """Polls one logged-in session and feeds the digest notifier."""

    def __init__(
        self,
        session: Session,
        config: RelayConfig,
        notifier: DigestNotifier,
        poller: SyncCheckPoller | None = None,
        sync: MessageSync | None = None,
    ):
        super().__init__(config.logs_path, config.loop_delay)
        self.session = session
        self.config = config
        self.notifier = notifier
        self.poller = poller or SyncCheckPoller(session, config)
        self.sync = sync or MessageSync(session, notifier.batch)
        self._consecutive_errors = 0

    @classmethod
    def from_session(
        cls,
        session: Session,
        config: RelayConfig,
        mailer: MailSender | None = None,
    ) -> WechatWatcher:
        """Wire the batch, notifier and forwarder for ``session`` from ``config``."""
        batch = NotificationBatch(config.batch_capacity)
        notifier = DigestNotifier(
            batch,
            logs_path=config.logs_path,
            mailer=mailer,
            recipients=config.notify_to,
            detail=config.detail,
            rate_limiter=RateLimiter(config.max_digests_per_hour),
            forwarder=WechatForwarder(session) if config.forward_to else None,
            forward_to=config.forward_to,
        )
        return cls(session, config, notifier)

    # ── Polling ─────────────────────────────────────────────────────

    async def check_for_updates(self) -> list[Message]:
        """Poll once and, when the server has data, fetch it.

        Returns:
            Messages seen for the first time in this iteration.

        Raises:
            WechatError: When every push host failed in every pass.
        """
        result = await asyncio.to_thread(self.poller.poll)
        if not result.has_data:
            return []

        try:
            report = await asyncio.to_thread(self.sync.sync)
        except WechatError as exc:
            self._consecutive_errors += 1
            self.logger.warning(
                "Message fetch failed (consecutive errors: %d): %s",
                self._consecutive_errors,
                exc,
            )
            self._log_event("errors", "webwxsync", "failure", str(exc))
            return []

        self._consecutive_errors = 0
        return report.new_messages

    def is_fatal(self, exc: Exception) -> bool:
        return isinstance(exc, WechatError)

    # ── Digest timer ────────────────────────────────────────────────

    async def _digest_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.notify_interval)
            try:
                await asyncio.to_thread(self.notifier.flush)
            except Exception:
                self.logger.exception("Digest flush failed")

    async def run(self) -> None:
        """Poll until the session ends; the digest is flushed on its own timer.

        On a fatal error the pending lines are flushed and an alert is sent
        before the error propagates.
        """
        digest_task = asyncio.create_task(self._digest_loop())
        try:
            await super().run()
        except WechatError as exc:
            reason = describe_fatal(exc)
            self.logger.error("Session ended: %s", reason)
            self._log_event("errors", "session", "terminated", reason)
            await _cancel(digest_task)
            try:
                await asyncio.to_thread(self.notifier.flush)
                await asyncio.to_thread(self.notifier.alert, reason)
            except Exception:
                self.logger.exception("Failed to deliver pending messages before exit")
            raise
        finally:
            await _cancel(digest_task)

    # ── Audit ───────────────────────────────────────────────────────

    def _log_event(self, kind: str, target: str, result: str, error: str) -> None:
        try:
            log_action(
                self.logs_path / kind,
                {
                    "timestamp": now_iso(),
                    "correlation_id": correlation_id(),
                    "actor": "wechat_watcher",
                    "action_type": "error",
                    "target": target,
                    "result": result,
                    "error": error[:200],
                    "details": {
                        "consecutive_errors": self._consecutive_errors,
                        "host": self.session.host,
                    },
                },
            )
        except OSError:
            self.logger.exception("Failed to write error log")


async def _cancel(task: asyncio.Task[Any]) -> None:
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def describe_fatal(exc: WechatError) -> str:
    if isinstance(exc, SessionInvalidError):
        return f"session invalidated (retcode {exc.retcode})"
    return f"all push hosts failed: {exc}"


# ── Login ───────────────────────────────────────────────────────────


def save_qr(path: str) -> QrCallback:
    """QR callback that writes the image to ``path`` for the user to scan."""

    def _save(uuid: str, image: bytes) -> None:
        qr_file = Path(path)
        qr_file.parent.mkdir(parents=True, exist_ok=True)
        qr_file.write_bytes(image)
        logger.info("Scan the QR code at %s with the WeChat app (uuid %s)", qr_file, uuid)

    return _save


def login_with_retries(
    config: RelayConfig,
    on_qr: QrCallback,
    transport: Transport | None = None,
) -> Session:
    """Log in, issuing a fresh QR code each time the scan times out.

    Raises:
        ScanTimeoutError: If no QR code was scanned in ``config.qr_attempts`` tries.
        WechatError: On any other login failure.
    """
    transport = transport or Transport(config)
    for attempt in range(1, config.qr_attempts + 1):
        flow = LoginFlow(config, transport)
        try:
            return flow.login(on_qr)
        except ScanTimeoutError:
            logger.warning("QR code expired (attempt %d/%d)", attempt, config.qr_attempts)

    msg = f"No QR code scanned after {config.qr_attempts} attempts"
    raise ScanTimeoutError(msg)


# ── CLI Entry Point ─────────────────────────────────────────────────


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="WeChat Watcher - relay messages to e-mail")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="JSON config file")
    parser.add_argument(
        "--to",
        action="append",
        help="E-mail recipient for digests (repeatable)",
    )
    parser.add_argument(
        "--no-detail",
        dest="detail",
        action="store_false",
        default=None,
        help="Send only the message count, not the messages",
    )
    parser.add_argument("--forward", help="Contact (nickname or user id) to forward digests to")
    parser.add_argument("--qr-path", help="Where to write the login QR image")
    parser.add_argument("--notify-interval", type=float, help="Seconds between digests")
    parser.add_argument(
        "--auth-only",
        action="store_true",
        help="Only authorize the Gmail sender and save its token, then exit",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the WeChat watcher."""
    load_dotenv()
    args = _parse_args(argv)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    config = load_config(
        args.config,
        overrides={
            "notify_to": args.to,
            "detail": args.detail,
            "forward_to": args.forward,
            "qr_path": args.qr_path,
            "notify_interval": args.notify_interval,
        },
    )

    gmail = GmailSender(
        credentials_path=config.gmail_credentials_path,
        token_path=config.gmail_token_path,
    )
    if args.auth_only:
        logger.info("Authorizing Gmail sender...")
        gmail.authorize_interactive()
        return

    mailer: MailSender | None = None
    if config.email_enabled:
        try:
            gmail.authenticate()
        except FileNotFoundError as exc:
            logger.error("%s", exc)
            sys.exit(EXIT_FAILURE)
        mailer = gmail
        logger.info("New messages will be e-mailed to %d recipient(s)", len(config.notify_to))
    if config.forward_to:
        logger.info("New messages will be forwarded to %s", config.forward_to)

    transport = Transport(config)
    try:
        session = login_with_retries(config, save_qr(config.qr_path), transport)
    except WechatError as exc:
        logger.error("Failed to login: %s", exc)
        transport.close()
        sys.exit(EXIT_FAILURE)

    watcher = WechatWatcher.from_session(session, config, mailer)
    logger.info(
        "Starting WeChat watcher (notify interval: %.0fs, detail: %s)",
        config.notify_interval,
        config.detail,
    )
    try:
        asyncio.run(watcher.run())
    except SessionInvalidError:
        sys.exit(EXIT_SESSION_INVALID)
    except WechatError:
        sys.exit(EXIT_FAILURE)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    finally:
        transport.close()


if __name__ == "__main__":
    main()
