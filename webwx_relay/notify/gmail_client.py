"""Gmail API sender for digest e-mails.

Synchronous wrapper around google-api-python-client, called from the
digest timer thread. Handles OAuth token loading and refresh, and retries
transient API errors with exponential backoff.
"""

from __future__ import annotations

import base64
import logging
import time
from email.message import EmailMessage
from pathlib import Path
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.send"]

MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0
RETRYABLE_STATUS_CODES = {429, 500, 503}


class GmailSender:
    """Sends plain-text e-mail through the Gmail API."""

    def __init__(
        self,
        credentials_path: str = "config/credentials.json",
        token_path: str = "config/token.json",
    ) -> None:
        self.credentials_path = Path(credentials_path)
        self.token_path = Path(token_path)
        self.service: Any = None

    def authenticate(self) -> None:
        """Load or refresh OAuth credentials and build the Gmail API service.

        Raises:
            FileNotFoundError: If no valid token exists.
        """
        creds: Credentials | None = None

        if self.token_path.exists():
            creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)

        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing expired Gmail token")
            creds.refresh(Request())
            self.token_path.write_text(creds.to_json(), encoding="utf-8")

        if not creds or not creds.valid:
            msg = (
                f"No valid Gmail token at {self.token_path}. "
                "Run with --auth-only to authorize."
            )
            raise FileNotFoundError(msg)

        self.service = build("gmail", "v1", credentials=creds)
        logger.info("Gmail API authenticated successfully")

    def authorize_interactive(self) -> None:
        """Run the interactive OAuth flow and save the token."""
        if not self.credentials_path.exists():
            msg = f"No credentials file at {self.credentials_path}"
            raise FileNotFoundError(msg)

        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), SCOPES)
        creds = flow.run_local_server(port=0)
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(creds.to_json(), encoding="utf-8")
        self.service = build("gmail", "v1", credentials=creds)
        logger.info("Gmail API authorized and token saved to %s", self.token_path)

    def _ensure_service(self) -> None:
        if self.service is None:
            self.authenticate()

    def _execute_with_retry(self, fn: Any, *args: Any, **kwargs: Any) -> Any:
        """Execute a callable with exponential backoff retry for transient errors.

        Retries on HTTP 401 (with re-auth), 429, 500, 503, and network errors.

        Raises:
            HttpError: If the error is not retryable or retries are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES):
            try:
                return fn(*args, **kwargs)
            except HttpError as exc:
                last_error = exc
                status = exc.resp.status if hasattr(exc, "resp") else 0

                if status == 401:
                    logger.warning("Auth error (attempt %d), refreshing token", attempt + 1)
                    self.service = None
                    self.authenticate()
                    continue

                if status in RETRYABLE_STATUS_CODES:
                    delay = INITIAL_BACKOFF * (2**attempt)
                    logger.warning(
                        "Retryable error %d (attempt %d), backing off %.1fs",
                        status,
                        attempt + 1,
                        delay,
                    )
                    time.sleep(delay)
                    continue

                raise

            except (ConnectionError, TimeoutError) as exc:
                last_error = exc
                delay = INITIAL_BACKOFF * (2**attempt)
                logger.warning("Network error (attempt %d): %s", attempt + 1, exc)
                time.sleep(delay)

        if last_error:
            raise last_error
        return None  # pragma: no cover

    def send(self, recipients: list[str], subject: str, body: str) -> dict[str, str]:
        """Send one message to every recipient.

        Args:
            recipients: E-mail addresses, joined into a single ``To`` header.
            subject: Subject line.
            body: Plain text body, may be empty.

        Returns:
            Dict with message_id and thread_id.
        """
        if not recipients:
            msg = "No recipients given"
            raise ValueError(msg)
        self._ensure_service()

        def _send() -> dict[str, str]:
            message = EmailMessage()
            message.set_content(body)
            message["To"] = ", ".join(recipients)
            message["Subject"] = subject

            encoded = base64.urlsafe_b64encode(message.as_bytes()).decode()
            result = (
                self.service.users()
                .messages()
                .send(userId="me", body={"raw": encoded})
                .execute()
            )
            return {
                "message_id": result["id"],
                "thread_id": result.get("threadId", ""),
            }

        return self._execute_with_retry(_send)
