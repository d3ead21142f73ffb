"""HTTP helpers shared by the signal adapters."""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx


def request_with_retry(
    client: httpx.Client,
    method: str,
    url: str,
    params: Optional[dict[str, Any]] = None,
    json: Optional[dict[str, Any]] = None,
    retries: int = 3,
) -> httpx.Response:
    """Send a request with simple retry and backoff on 5xx and transport errors."""
    attempt = 0
    while True:
        try:
            response = client.request(method, url, params=params, json=json)
            if response.status_code >= 500 and attempt < retries:
                attempt += 1
                time.sleep(min(2**attempt, 8))
                continue
            return response
        except httpx.RequestError:
            attempt += 1
            if attempt > retries:
                raise
            time.sleep(min(2**attempt, 8))
