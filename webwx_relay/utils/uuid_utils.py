"""Identifier utilities for the relay.

Correlation IDs tie audit log entries together; device and client message
IDs are the opaque identifiers the WeChat web protocol expects.
"""

import random
import uuid

from webwx_relay.utils.timestamps import now_millis


def correlation_id() -> str:
    """Generate a new UUID v4 correlation ID.

    Returns:
        A UUID v4 string.

    Examples:
        >>> cid = correlation_id()
        >>> len(cid)
        36
    """
    return str(uuid.uuid4())


def device_id() -> str:
    """Generate a web client device identifier: ``"e"`` followed by 15 digits.

    Examples:
        >>> did = device_id()
        >>> did[0], len(did)
        ('e', 16)
    """
    return f"e{random.randrange(10**15):015d}"


def client_msg_id() -> str:
    """Generate a ``LocalID``/``ClientMsgId`` for an outgoing message.

    Millisecond clock plus four random digits, the format the web client uses.
    """
    return f"{now_millis()}{random.randrange(10**4):04d}"
