"""HTTP client for the CDN batch upload service.

WHY: The bot gives the CDN a list of proxy URLs; the CDN downloads each
one, publishes it, and answers with the public URLs. This module wraps
that single call so the Slack handler doesn't deal with HTTP details.

HOW: CDNClient wraps a synchronous httpx.Client (Slack listeners already
run in worker threads) with Bearer auth. Use it as a context manager.

RULES:
- Use as: with CDNClient(url, api_key) as cdn: cdn.upload(urls)
- Request body is a bare JSON array of URL strings
- Any non-2xx status raises CDNAPIError
- A 2xx body that isn't the expected JSON also raises CDNAPIError
- No retries: the proxy tokens are single-use, so a second attempt
  could not fetch the same files anyway
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from cdn_relay.cdn.models import UploadResult

logger = logging.getLogger(__name__)

# The CDN fetches every file before it answers, so uploads can take a while
DEFAULT_TIMEOUT_S = 300.0


class CDNAPIError(Exception):
    """Raised when the CDN rejects an upload or returns an unusable body.

    RULES:
    - Always include status_code and message
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__("CDN error {}: {}".format(status_code, message))


class CDNClient:
    """Client for the CDN's batch upload endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> CDNClient:
        self._client = httpx.Client(
            headers={"Authorization": "Bearer {}".format(self._api_key)},
            timeout=httpx.Timeout(self._timeout, connect=30.0),
            transport=self._transport,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            self._client.close()
            self._client = None

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            raise RuntimeError(
                "CDNClient must be used as a context manager: "
                "with CDNClient(url, api_key) as cdn: ..."
            )
        return self._client

    def upload(self, urls: List[str]) -> UploadResult:
        """Submit ``urls`` for upload and return the published files.

        Raises:
            CDNAPIError: on a non-2xx status or a malformed response body.
            httpx.HTTPError: on transport failures.
        """
        client = self._ensure_client()
        logger.info("Submitting %d file(s) to the CDN", len(urls))

        resp = client.post(self._url, json=urls)
        if not resp.is_success:
            raise CDNAPIError(resp.status_code, resp.text)

        try:
            result = UploadResult.from_dict(resp.json())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CDNAPIError(resp.status_code, "Unexpected response body: {}".format(exc))

        logger.info("CDN published %d file(s)", len(result.files))
        return result
