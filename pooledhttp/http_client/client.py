import logging
import threading
from typing import Any, Mapping, Optional, Tuple

import requests
from requests.structures import CaseInsensitiveDict

from .adapter import ConnectionWatch, PooledHTTPAdapter, watching
from .body import encode_body
from .config import HTTPClientConfig
from .context import Context
from .exceptions import (
    HTTPClientError,
    RequestBuildError,
    TransportError,
    DeadlineExceededError,
    ServerError,
)
from .io import MIN_READ, GzipDecoder, read_all
from .logger import RequestTrace, logger as default_logger

Headers = Optional[Mapping[str, str]]


class HttpClient:
    """A pooled HTTP client with per-verb helpers.

    Every helper funnels into send(), which runs the request under a context
    bounded by the configured overall timeout, reads the whole body into
    memory (decompressing gzip bodies) and returns it as bytes.

    Key features:
    - Shared connection pool per origin, safe to use from many threads
    - Caller-supplied Context for cancellation and deadlines
    - JSON and URL-encoded form bodies
    - Transparent gzip decompression; other encodings are returned raw
    - Optional rich request traces (debug=True)

    5xx responses return b"" and are only logged unless the config sets
    raise_on_server_error. TLS verification is on unless insecure_skip_verify.
    """

    def __init__(self, config: Optional[HTTPClientConfig] = None,
                 logger: Optional[logging.Logger] = None, debug: bool = False):
        self.config = config or HTTPClientConfig()
        self.logger = logger or default_logger
        self.debug = debug
        self._adapter = self._create_adapter()
        self._session = self._create_session()

        if self.config.insecure_skip_verify:
            self.logger.warning("TLS certificate verification is disabled; "
                                "server identity is not checked for https requests")

    def _create_adapter(self) -> PooledHTTPAdapter:
        return PooledHTTPAdapter(
            pool_connections=self.config.pool_connections,
            pool_maxsize=self.config.max_idle_conns_per_host,
            keep_alive=self.config.keep_alive,
            idle_conn_timeout=self.config.idle_conn_timeout,
        )

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.mount("https://", self._adapter)
        session.mount("http://", self._adapter)
        session.headers.update(self.config.headers)
        session.verify = not self.config.insecure_skip_verify
        # No proxies or netrc credentials from the environment
        session.trust_env = False
        return session

    # ========== Method helpers ==========

    def get(self, ctx: Optional[Context], url: str, headers: Headers = None) -> bytes:
        """Make a HTTP GET request to `url` under `ctx`."""
        request = self.build_request("GET", url, headers)
        return self.send(ctx, request)

    def post(self, ctx: Optional[Context], url: str, content_type: str,
             headers: Headers = None, payload: Any = None) -> bytes:
        """Make a HTTP POST request with `payload` encoded for `content_type`."""
        return self._write("POST", ctx, url, content_type, headers, payload)

    def put(self, ctx: Optional[Context], url: str, content_type: str,
            headers: Headers = None, payload: Any = None) -> bytes:
        """Make a HTTP PUT request with `payload` encoded for `content_type`."""
        return self._write("PUT", ctx, url, content_type, headers, payload)

    def patch(self, ctx: Optional[Context], url: str, content_type: str,
              headers: Headers = None, payload: Any = None) -> bytes:
        """Make a HTTP PATCH request with `payload` encoded for `content_type`."""
        return self._write("PATCH", ctx, url, content_type, headers, payload)

    def delete(self, ctx: Optional[Context], url: str, content_type: Optional[str] = None,
               headers: Headers = None, payload: Any = None) -> bytes:
        """Make a HTTP DELETE request to `url` under `ctx`.

        `content_type` is sent as a header when given, but DELETE never carries
        a body: `payload` is accepted for signature compatibility and ignored.
        """
        if payload is not None:
            self.logger.warning(f"DELETE {url}: payload ignored, DELETE requests are sent without a body")
        if content_type is not None:
            headers = self._with_content_type(headers, content_type)
        request = self.build_request("DELETE", url, headers)
        return self.send(ctx, request)

    def _write(self, method: str, ctx: Optional[Context], url: str, content_type: str,
               headers: Headers, payload: Any) -> bytes:
        body = encode_body(content_type, payload, log=self.logger, strict=self.config.strict_encoding)
        request = self.build_request(method, url, self._with_content_type(headers, content_type), body)
        return self.send(ctx, request)

    @staticmethod
    def _with_content_type(headers: Headers, content_type: str) -> CaseInsensitiveDict:
        merged = CaseInsensitiveDict(headers or {})
        merged["Content-Type"] = content_type
        return merged

    # ========== Execution ==========

    def build_request(self, method: str, url: str, headers: Headers = None,
                      body: Optional[bytes] = None) -> requests.PreparedRequest:
        """Prepare a request carrying the session's default headers.

        Raises:
            RequestBuildError: If the URL or headers are malformed
        """
        try:
            return self._session.prepare_request(
                requests.Request(method=method, url=url, headers=headers, data=body)
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RequestBuildError(f"{method} - request creation failed: {e}") from e

    def send(self, ctx: Optional[Context], request: requests.PreparedRequest) -> bytes:
        """Execute a prepared request and return the full response body.

        The call runs under a child of `ctx` limited by config.timeout; the
        earlier of the two deadlines applies.

        Returns:
            The response body, decompressed when the server sent gzip. b"" for
            5xx responses unless raise_on_server_error is set.

        Raises:
            DeadlineExceededError: If the deadline elapsed before the body was read
            CancelledError: If `ctx` was cancelled
            TransportError: For other network failures
            ServerError: For 5xx responses when raise_on_server_error is set
            ResponseDecodeError: If a gzip body is corrupt
            ResponseTooLargeError: If the body exceeds max_response_bytes
            ResponseReadError: If reading the body fails
        """
        if ctx is None:
            ctx = Context.background()
        trace = RequestTrace(request.method, request.url) if self.debug else None

        with ctx.with_timeout(self.config.timeout) as call_ctx:
            try:
                return self._execute(call_ctx, request, trace)
            except HTTPClientError as e:
                if trace is not None:
                    trace.failure(e)
                raise

    def _execute(self, ctx: Context, request: requests.PreparedRequest,
                 trace: Optional[RequestTrace]) -> bytes:
        err = ctx.err()
        if err is not None:
            raise err

        watch = ConnectionWatch()

        def interrupt(_ctx: Context):
            watch.abort()

        ctx.add_done_callback(interrupt)
        timer = self._arm_deadline(ctx)
        try:
            try:
                with watching(watch):
                    response = self._session.send(request, stream=True, timeout=self._timeouts(ctx),
                                                  allow_redirects=True)
            except Exception as e:
                err = ctx.err()
                if err is None and ctx.deadline is not None and isinstance(e, requests.exceptions.ReadTimeout):
                    # The read timeout is the time left before the deadline
                    err = DeadlineExceededError()
                if err is not None:
                    raise err from e
                if not isinstance(e, requests.exceptions.RequestException):
                    raise
                self.logger.error(f"HTTP {request.method} failed for {request.url}: {e}")
                raise TransportError(f"Network error: {e}") from e

            try:
                return self._read_response(ctx, request, response, trace)
            finally:
                response.close()
        finally:
            if timer is not None:
                timer.cancel()
            ctx.remove_done_callback(interrupt)
            watch.detach()

    def _read_response(self, ctx: Context, request: requests.PreparedRequest,
                       response: requests.Response, trace: Optional[RequestTrace]) -> bytes:
        status = response.status_code
        if status >= 500:
            self.logger.warning(f"{request.method} {request.url} returned server error {status}")
            if self.config.raise_on_server_error:
                raise ServerError(status, request.url)
            if trace is not None:
                trace.swallowed(status)
            return b""

        encoding = response.headers.get("Content-Encoding", "").strip().lower()
        # Bypass urllib3 decoding so only gzip is ever decompressed
        chunks = response.raw.stream(MIN_READ, decode_content=False)
        if encoding == "gzip":
            chunks = GzipDecoder().decode_chunks(chunks)
        body = read_all(chunks, ctx, self.config.max_response_bytes)

        self.logger.debug(f"{request.method} {request.url} -> {status} ({len(body)} bytes)")
        if trace is not None:
            trace.success(status, len(body), encoding)
        return body

    @staticmethod
    def _arm_deadline(ctx: Context) -> Optional[threading.Timer]:
        # Wakes a call blocked on the socket once the deadline passes
        remaining = ctx.remaining()
        if remaining is None:
            return None
        timer = threading.Timer(remaining, ctx.expire)
        timer.daemon = True
        timer.start()
        return timer

    def _timeouts(self, ctx: Context) -> Tuple[Optional[float], Optional[float]]:
        remaining = ctx.remaining()
        connect = self.config.dial_timeout or None
        if remaining is not None:
            connect = remaining if connect is None else min(connect, remaining)
        return connect, remaining

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
