"""Request/response interceptors applied around the authenticated transport.

Interceptors run in registration order. Each one receives the pipeline and
its own index and decides whether to forward the request with
``pipeline.next`` or answer it directly.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from requests import PreparedRequest, Response
from requests.adapters import BaseAdapter

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = (403, 429)


class Middleware:
    """Base interceptor that forwards every request untouched."""

    name = "middleware"

    def intercept(self, pipeline: "Pipeline", index: int, request: PreparedRequest, **kwargs) -> Response:
        return pipeline.next(request, index, **kwargs)


class Pipeline:
    """A fixed sequence of interceptors ending in a transport adapter."""

    def __init__(self, middlewares: Sequence[Middleware], transport: BaseAdapter) -> None:
        self.middlewares = tuple(middlewares)
        self.transport = transport

    def next(self, request: PreparedRequest, index: int, **kwargs) -> Response:
        """Invoke the interceptor after ``index``, or the transport once the chain is exhausted."""

        following = index + 1
        if following < len(self.middlewares):
            return self.middlewares[following].intercept(self, following, request, **kwargs)
        return self.transport.send(request, **kwargs)

    def send(self, request: PreparedRequest, **kwargs) -> Response:
        return self.next(request, -1, **kwargs)


class MiddlewareAdapter(BaseAdapter):
    """Expose a :class:`Pipeline` as a ``requests`` transport adapter."""

    def __init__(self, inner: BaseAdapter, middlewares: Sequence[Middleware] = ()) -> None:
        super().__init__()
        self.pipeline = Pipeline(middlewares, inner)

    @property
    def middlewares(self):
        return self.pipeline.middlewares

    def send(self, request: PreparedRequest, **kwargs) -> Response:
        return self.pipeline.send(request, **kwargs)

    def close(self) -> None:
        self.pipeline.transport.close()


def is_rate_limited(response: Response) -> bool:
    """Return whether ``response`` signals a primary or secondary rate limit."""

    if response.status_code not in RATE_LIMIT_STATUSES:
        return False
    headers = response.headers
    if "Retry-After" in headers:
        return True
    return headers.get("X-RateLimit-Remaining") == "0"


def rate_limit_wait(response: Response, *, max_wait: float = 300, now: Optional[float] = None) -> float:
    """Seconds to wait before retrying a rate-limited response."""

    headers = response.headers
    if "Retry-After" in headers:
        try:
            return min(max(float(headers["Retry-After"]), 0.0), max_wait)
        except (TypeError, ValueError):
            pass

    try:
        reset = int(headers.get("X-RateLimit-Reset", 0))
    except (TypeError, ValueError):
        reset = 0
    if reset <= 0:
        return 0.0

    current = time.time() if now is None else now
    return min(max(reset - current + 1, 0.0), max_wait)


class RateLimitHandler(Middleware):
    """Wait and re-send requests that hit GitHub's rate limits.

    The same prepared request is re-sent, so a file-like body is read into
    bytes before the first attempt. After ``max_retries`` retries the last
    response is returned as-is.
    """

    name = "rate_limit"

    def __init__(
        self,
        max_retries: int = 3,
        max_wait: float = 300,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.max_wait = max_wait
        self._sleep = sleep

    def intercept(self, pipeline: Pipeline, index: int, request: PreparedRequest, **kwargs) -> Response:
        _buffer_body(request)
        response = pipeline.next(request, index, **kwargs)
        attempt = 0
        while attempt < self.max_retries and is_rate_limited(response):
            attempt += 1
            wait = rate_limit_wait(response, max_wait=self.max_wait)
            logger.warning(
                "Rate limit hit (status %s). Waiting %.0fs before retry %d/%d",
                response.status_code,
                wait,
                attempt,
                self.max_retries,
                extra={"url": request.url, "method": request.method},
            )
            response.close()
            if wait > 0:
                self._sleep(wait)
            response = pipeline.next(request, index, **kwargs)
        return response


class LogHandler(Middleware):
    """Log outgoing requests; responses pass through untouched."""

    name = "log"

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.log = log or logger
        self.level = level

    def intercept(self, pipeline: Pipeline, index: int, request: PreparedRequest, **kwargs) -> Response:
        if self.log.isEnabledFor(self.level):
            self._log_request(request, index)
        return pipeline.next(request, index, **kwargs)

    def _log_request(self, request: PreparedRequest, index: int) -> None:
        self.log.log(self.level, "Method: %s", request.method)
        self.log.log(self.level, "URL: %s", request.url)
        self.log.log(self.level, "Headers:")
        for key, value in request.headers.items():
            if key.lower() == "authorization":
                value = "<redacted>"
            self.log.log(self.level, "%s: %s", key, value)

        body = _buffer_body(request)
        if body is not None:
            if isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
            self.log.log(self.level, "Body: %s", body)
        self.log.log(self.level, "Middleware index: %d", index)


def _buffer_body(request: PreparedRequest):
    """Return the request body, replacing a consumed stream with its bytes."""

    body = request.body
    if body is None or isinstance(body, (bytes, str)):
        return body
    if hasattr(body, "read"):
        data = body.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        request.body = data
        return data
    # Generators cannot be replayed; leave them for the transport.
    return None
