"""
Test doubles for the transport stack.

Provides a recording transport adapter that stands in for the network and a
response factory shaped like what ``HTTPAdapter`` returns.
"""

import io
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict


REASONS = {200: "OK", 201: "Created", 403: "Forbidden", 404: "Not Found", 429: "Too Many Requests", 500: "Internal Server Error"}


def make_response(request, status=200, json_body=None, headers=None, body=None):
    """Build a ``requests.Response`` as an adapter would return it."""
    if body is None:
        body = json.dumps(json_body).encode("utf-8") if json_body is not None else b""
    response = requests.Response()
    response.status_code = status
    response.reason = REASONS.get(status, "")
    response.headers = CaseInsensitiveDict(headers or {})
    if json_body is not None:
        response.headers.setdefault("Content-Type", "application/json; charset=utf-8")
    response._content = body
    response._content_consumed = True
    response.raw = io.BytesIO(body)
    response.encoding = "utf-8"
    response.request = request
    response.url = request.url
    return response


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Any
    kwargs: Dict[str, Any] = field(default_factory=dict)


class FakeTransport(BaseAdapter):
    """Transport adapter that records requests and answers through ``handler``."""

    def __init__(self, handler: Callable[[requests.PreparedRequest], requests.Response]):
        super().__init__()
        self.handler = handler
        self.sent: List[SentRequest] = []
        self.closed = False

    def send(self, request, **kwargs):
        body = request.body
        if hasattr(body, "read"):
            body = body.read()
        self.sent.append(SentRequest(request.method, request.url, dict(request.headers), body, kwargs))
        return self.handler(request)

    def close(self):
        self.closed = True

    def requests_to(self, fragment: str) -> List[SentRequest]:
        return [sent for sent in self.sent if fragment in sent.url]


def iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubStub:
    """Route token exchanges and API calls to canned answers.

    Token exchanges return ``ghs_1``, ``ghs_2``... expiring at ``expires_at``.
    Every other request is answered by ``api_handler`` (200 ``{}`` by default).
    """

    def __init__(self, expires_at: Optional[datetime] = None, api_handler=None):
        self.expires_at = expires_at or datetime.now(timezone.utc) + timedelta(hours=1)
        self.api_handler = api_handler or (lambda request: make_response(request, 200, {}))
        self.exchanges = 0
        self.transport = FakeTransport(self)

    def __call__(self, request):
        if request.url.endswith("/access_tokens") and request.method == "POST":
            self.exchanges += 1
            return make_response(
                request,
                201,
                {"token": f"ghs_{self.exchanges}", "expires_at": iso(self.expires_at)},
            )
        return self.api_handler(request)
