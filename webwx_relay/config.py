"""Relay configuration.

All tunables live in one frozen ``RelayConfig`` that is passed to every
component. Values come from defaults, then an optional JSON file, then the
environment (after ``load_dotenv``), then CLI flags.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/wechat_config.json"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_FALLBACK_PUSH_HOSTS = (
    "webpush.weixin.qq.com",
    "webpush2.weixin.qq.com",
    "webpush.wechat.com",
    "webpush1.wechat.com",
    "webpush2.wechat.com",
    "webpush1.wechatapp.com",
)


@dataclass(frozen=True)
class RelayConfig:
    """Settings for one relay process."""

    # Session
    app_id: str = "wx782c26e4c19acffb"
    lang: str = "en_US"
    user_agent: str = DEFAULT_USER_AGENT
    referer: str = "https://wx.qq.com/"
    login_host: str = "login.weixin.qq.com"
    request_timeout: float = 30.0
    sync_check_timeout: float = 35.0
    scan_attempts: int = 10
    qr_attempts: int = 3
    poll_passes: int = 3
    poll_backoff_seconds: float = 1.0
    fallback_push_hosts: tuple[str, ...] = DEFAULT_FALLBACK_PUSH_HOSTS

    # Loop and notification
    loop_delay: float = 0.1
    notify_interval: float = 60.0
    batch_capacity: int = 9999
    notify_to: tuple[str, ...] = ()
    detail: bool = True
    forward_to: str = ""
    max_digests_per_hour: int = 30

    # Files
    qr_path: str = "wechat_qr.png"
    logs_path: str = "./logs"
    gmail_credentials_path: str = "config/credentials.json"
    gmail_token_path: str = "config/token.json"

    @property
    def email_enabled(self) -> bool:
        return bool(self.notify_to)


def _coerce(name: str, value: Any, template: Any) -> Any:
    """Convert a raw JSON/env value to the type of the default ``template``."""
    if isinstance(template, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if isinstance(template, int):
        return int(value)
    if isinstance(template, float):
        return float(value)
    if isinstance(template, tuple):
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        return tuple(str(v) for v in value)
    if isinstance(template, str):
        return str(value)
    msg = f"Unsupported config field: {name}"
    raise TypeError(msg)


def _apply(config: RelayConfig, overrides: Mapping[str, Any], source: str) -> RelayConfig:
    known = {f.name for f in fields(RelayConfig)}
    changes: dict[str, Any] = {}
    for name, value in overrides.items():
        if value is None:
            continue
        if name not in known:
            logger.warning("Ignoring unknown config key %r from %s", name, source)
            continue
        try:
            changes[name] = _coerce(name, value, getattr(config, name))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %r from %s: %r", name, source, value)
    return replace(config, **changes) if changes else config


def _load_json_config(config_path: str) -> dict[str, Any]:
    """Load relay configuration from a JSON file."""
    path = Path(config_path)
    if not path.exists():
        logger.warning("WeChat config not found at %s, using defaults", config_path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Failed to parse WeChat config at %s, using defaults", config_path)
        return {}
    if not isinstance(data, dict):
        logger.warning("WeChat config at %s is not an object, using defaults", config_path)
        return {}
    return data


ENV_KEYS = {
    "WECHAT_APP_ID": "app_id",
    "WECHAT_LANG": "lang",
    "WECHAT_NOTIFY_INTERVAL": "notify_interval",
    "WECHAT_NOTIFY_TO": "notify_to",
    "WECHAT_DETAIL": "detail",
    "WECHAT_FORWARD_TO": "forward_to",
    "WECHAT_QR_PATH": "qr_path",
    "WECHAT_LOGS_PATH": "logs_path",
    "WECHAT_MAX_DIGESTS_PER_HOUR": "max_digests_per_hour",
    "GMAIL_CREDENTIALS_PATH": "gmail_credentials_path",
    "GMAIL_TOKEN_PATH": "gmail_token_path",
}


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RelayConfig:
    """Build the relay configuration.

    Precedence, lowest first: defaults, JSON file, environment, ``overrides``
    (CLI flags). Call ``load_dotenv()`` beforehand to pick up a ``.env`` file.
    """
    env = os.environ if env is None else env
    config = _apply(RelayConfig(), _load_json_config(config_path), config_path)
    from_env = {field_name: env.get(var) for var, field_name in ENV_KEYS.items()}
    config = _apply(config, from_env, "environment")
    if overrides:
        config = _apply(config, overrides, "command line")
    return config
