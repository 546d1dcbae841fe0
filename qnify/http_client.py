"""A small HTTP client with retries and exponential backoff."""

from __future__ import annotations

import json
import time
from typing import Any, Mapping

import requests
from requests.adapters import HTTPAdapter

from qnify import consts

Body = bytes | str | None


class HttpClient:
    """HTTP client bound to a base URL; retries network errors and 5xx responses."""

    def __init__(self, base_url: str, reuse: bool = False) -> None:
        self.base_url = base_url
        self.retry_count = 3
        self.timeout = 30.0
        self.backoff = 1.0
        self._session = requests.Session()
        if reuse:
            adapter = HTTPAdapter(pool_connections=10, pool_maxsize=2)
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def get(
        self, endpoint: str, headers: Mapping[str, str] | None = None
    ) -> requests.Response:
        return self._request("GET", endpoint, headers, None)

    def post(
        self,
        endpoint: str,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> requests.Response:
        return self._request("POST", endpoint, headers, body)

    def post_json(self, endpoint: str, body: Any) -> requests.Response:
        data = json.dumps(body, separators=(",", ":")).encode()
        return self._request(
            "POST", endpoint, {consts.CONTENT_TYPE: consts.JSON_TYPE}, data
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        headers: Mapping[str, str] | None,
        body: Any,
    ) -> requests.Response:
        if hasattr(body, "read"):
            body = body.read()
        if isinstance(body, str):
            body = body.encode()

        url = self.base_url + endpoint
        for attempt in range(self.retry_count + 1):
            last = attempt == self.retry_count
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=dict(headers or {}),
                    data=body,
                    timeout=self.timeout,
                )
            except requests.RequestException:
                if last:
                    raise
            else:
                if 0 < response.status_code < 500 or last:
                    return response
                response.close()
            time.sleep(self.backoff * (1 << attempt))
        raise AssertionError("unreachable")