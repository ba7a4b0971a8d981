"""Notification layer: the digest batch and its delivery channels.

Lines are queued by the sync step and drained by the digest timer into an
e-mail (Gmail API) and, optionally, a forwarded WeChat message.
"""
