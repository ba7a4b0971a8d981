"""Sync-check poller: the long-poll primitive with host failover.

A host is accepted only when it answers with retcode 0. Anything else
(network error, unexpected body, nonzero retcode) moves on to the next
candidate. Up to ``poll_passes`` full passes are made over the host list.
A nonzero retcode from any host is then raised as ``SessionInvalidError``;
otherwise the last error is raised.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from webwx_relay.config import RelayConfig
from webwx_relay.utils.timestamps import now_millis
from webwx_relay.wechat.decoders import RegexResultDecoder, ResultDecoder
from webwx_relay.wechat.errors import SessionInvalidError, TransportError, WechatError
from webwx_relay.wechat.hosts import CandidateHostProvider, RegionalHostProvider
from webwx_relay.wechat.models import PollResult
from webwx_relay.wechat.session import Session

logger = logging.getLogger(__name__)


class SyncCheckPoller:
    """Asks the push hosts whether new data is waiting for ``session``."""

    def __init__(
        self,
        session: Session,
        config: RelayConfig,
        hosts: CandidateHostProvider | None = None,
        decoder: ResultDecoder | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.config = config
        self.hosts = hosts or RegionalHostProvider(config.fallback_push_hosts)
        self.decoder = decoder or RegexResultDecoder()
        self._sleep = sleep
        self.preferred_host: str | None = None

    def candidate_hosts(self) -> list[str]:
        """Candidate hosts, with the last host that answered tried first."""
        hosts = self.hosts.candidates(self.session.host)
        if self.preferred_host in hosts:
            hosts.remove(self.preferred_host)
            hosts.insert(0, self.preferred_host)
        return hosts

    def check_host(self, host: str) -> PollResult:
        """One long-poll request against ``host``.

        Raises:
            TransportError: On network failure or non-200 status.
            ProtocolMismatchError: If the body is not a sync-check literal.
        """
        session = self.session
        with session.lock:
            params = {
                "r": now_millis(),
                "skey": session.login_info.skey,
                "sid": session.login_info.wxsid,
                "uin": session.login_info.wxuin,
                "deviceid": session.device_id,
                "synckey": str(session.sync_key),
                "_": now_millis(),
            }
            body = session.transport.get_text(
                session.url("synccheck", host=host),
                params=params,
                timeout=self.config.sync_check_timeout,
            )
        result = self.decoder.decode_sync_check(body)
        return PollResult(retcode=result.retcode, selector=result.selector, host=host)

    def poll(self) -> PollResult:
        """Return the first successful sync-check result.

        Raises:
            SessionInvalidError: If any host returned a nonzero retcode.
            TransportError: If the last other failure was a network error.
            ProtocolMismatchError: If the last other failure was an unparseable body.
        """
        last_error: WechatError | None = None
        session_error: SessionInvalidError | None = None

        for attempt in range(self.config.poll_passes):
            if attempt:
                self._sleep(self.config.poll_backoff_seconds)

            for host in self.candidate_hosts():
                try:
                    result = self.check_host(host)
                except WechatError as exc:
                    logger.warning("Sync check on %s failed (pass %d): %s", host, attempt + 1, exc)
                    last_error = exc
                    continue

                if result.ok:
                    if host != self.preferred_host:
                        logger.info("Using push host %s", host)
                    self.preferred_host = host
                    return result

                logger.warning(
                    "Sync check on %s returned retcode %s (pass %d)",
                    host,
                    result.retcode,
                    attempt + 1,
                )
                session_error = SessionInvalidError(result.retcode)

        if session_error is not None:
            raise session_error
        if last_error is None:
            last_error = TransportError("no push hosts to poll")
        raise last_error
