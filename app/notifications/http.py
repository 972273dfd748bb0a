# app/notifications/http.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx


@dataclass
class HttpResponse:
    status_code: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient:
    def __init__(
        self,
        timeout_s: float = 5.0,
        follow_redirects: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        # transport is injectable so tests can use httpx.MockTransport
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects, transport=transport)

    def post(self, url: str, *, headers: dict[str, str], json_body: dict[str, Any] | None = None) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body)
        return HttpResponse(status_code=r.status_code)
