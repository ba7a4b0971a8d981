"""Candidate push hosts for the sync-check long poll.

The push service is sharded over several edge hosts per region, and their
availability varies. The provider turns the web host a user was routed to
at login into an ordered list of push hosts to try.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

# Checked in order; the first suffix the web host ends with wins.
REGIONAL_PUSH_HOSTS = (
    ("wx2.qq.com", "webpush.wx2.qq.com"),
    ("wx8.qq.com", "webpush.wx8.qq.com"),
    ("qq.com", "webpush.wx.qq.com"),
    ("web2.wechat.com", "webpush.web2.wechat.com"),
    ("wechat.com", "webpush.web.wechat.com"),
)


class CandidateHostProvider(Protocol):
    def candidates(self, web_host: str) -> list[str]: ...


class RegionalHostProvider:
    """Regional push host first, then ``webpush.<web host>``, then fallbacks."""

    def __init__(self, fallback_hosts: Iterable[str] = ()) -> None:
        self.fallback_hosts = tuple(fallback_hosts)

    def candidates(self, web_host: str) -> list[str]:
        hosts: list[str] = []
        for suffix, push_host in REGIONAL_PUSH_HOSTS:
            if web_host == suffix or web_host.endswith("." + suffix):
                hosts.append(push_host)
                break
        if web_host:
            hosts.append(f"webpush.{web_host}")
        hosts.extend(self.fallback_hosts)
        return list(dict.fromkeys(hosts))
