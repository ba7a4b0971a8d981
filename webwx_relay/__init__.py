"""webwx-relay: relays WeChat web messages to e-mail digests."""

__version__ = "0.1.0"
