"""HTTP transport for the WeChat web session.

Wraps a ``requests.Session`` so every request carries the same browser
identity and referer, shares one cookie jar, and has a timeout. Network
failures surface as ``TransportError``; callers decide which statuses are
acceptable.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from webwx_relay.config import RelayConfig
from webwx_relay.wechat.errors import ProtocolMismatchError, TransportError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


class Transport:
    """Synchronous HTTP client bound to one WeChat web session."""

    def __init__(self, config: RelayConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.http = session or requests.Session()
        self.http.headers.update(
            {
                "User-Agent": config.user_agent,
                "Referer": config.referer,
            }
        )

    def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        timeout: float | None = None,
        allow_redirects: bool = True,
        expected_status: int | None = 200,
    ) -> requests.Response:
        """Issue a request and return the response.

        Args:
            method: HTTP method.
            url: Absolute URL.
            params: Query parameters.
            json_body: Serialized as UTF-8 JSON without ASCII escaping.
            timeout: Seconds; defaults to ``config.request_timeout``.
            allow_redirects: Follow 3xx responses.
            expected_status: Raise ``TransportError`` on any other status.
                ``None`` accepts every status.

        Raises:
            TransportError: On network failure or an unexpected status.
        """
        data = None
        headers = None
        if json_body is not None:
            data = json.dumps(json_body, ensure_ascii=False).encode("utf-8")
            headers = {"Content-Type": JSON_CONTENT_TYPE}

        logger.debug("Request: %s %s", method, url)
        try:
            resp = self.http.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=timeout or self.config.request_timeout,
                allow_redirects=allow_redirects,
            )
        except requests.RequestException as exc:
            msg = f"{method} {url} failed: {exc}"
            raise TransportError(msg) from exc

        logger.debug("Response: %s %s", resp.status_code, resp.reason)
        if expected_status is not None and resp.status_code != expected_status:
            msg = f"{method} {url} returned HTTP {resp.status_code}"
            raise TransportError(msg, status=resp.status_code)
        return resp

    def get_text(self, url: str, **kwargs: Any) -> str:
        return self._text(self.request("GET", url, **kwargs))

    def get_bytes(self, url: str, **kwargs: Any) -> bytes:
        return self.request("GET", url, **kwargs).content

    def post_json(self, url: str, body: Any, **kwargs: Any) -> dict[str, Any]:
        """POST a JSON body and decode a JSON object response.

        Raises:
            TransportError: On network failure or a non-200 status.
            ProtocolMismatchError: If the response is not a JSON object.
        """
        text = self._text(self.request("POST", url, json_body=body, **kwargs))
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProtocolMismatchError(f"invalid JSON from {url}: {exc}", text) from exc
        if not isinstance(data, dict):
            raise ProtocolMismatchError(f"expected JSON object from {url}", text)
        return data

    def close(self) -> None:
        self.http.close()

    @staticmethod
    def _text(resp: requests.Response) -> str:
        return resp.content.decode("utf-8", "replace")
