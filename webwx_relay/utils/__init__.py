"""Shared utilities for the relay."""

from webwx_relay.utils.logging_utils import log_action, read_recent_logs, redact_email
from webwx_relay.utils.timestamps import now_iso, now_millis, today_iso
from webwx_relay.utils.uuid_utils import client_msg_id, correlation_id, device_id

__all__ = [
    "now_iso",
    "now_millis",
    "today_iso",
    "correlation_id",
    "device_id",
    "client_msg_id",
    "log_action",
    "read_recent_logs",
    "redact_email",
]
