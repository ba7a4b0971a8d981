"""Watcher modules: the polling loops that drive the relay."""

from webwx_relay.watchers.base_watcher import BaseWatcher
from webwx_relay.watchers.wechat_watcher import WechatWatcher

__all__ = ["BaseWatcher", "WechatWatcher"]
