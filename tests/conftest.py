# tests/conftest.py
"""
Global pytest fixtures for pooledhttp tests.
"""

import gzip
import threading
import time
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List
from urllib.parse import parse_qs, urlsplit

import pytest

GZIP_PLAIN = b"hello gzip world " * 64
DEFLATE_PLAIN = b"deflated payload"


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: dict
    body: bytes


class RecordingHandler(BaseHTTPRequestHandler):
    """Serves canned routes and records every request it receives.

    Routes:
        /echo, anything else   200 "ok"
        /raw                   200 plain body
        /gzip                  gzip-encoded GZIP_PLAIN
        /deflate               deflate-encoded DEFLATE_PLAIN
        /badgzip               claims gzip, sends garbage
        /status/<code>         given status with body "boom"
        /sleep/<seconds>       sleeps, then 200 "late"
        /big/<n>               n bytes of "x"
        /drip/<n>/<interval>   headers at once, then n bytes one per interval
        /redirect?to=<url>     302 to the given URL
    """

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        self.server.recorded.append(RecordedRequest(
            method=self.command,
            path=self.path,
            headers={k.lower(): v for k, v in self.headers.items()},
            body=body,
        ))

        target = urlsplit(self.path)
        query = parse_qs(target.query)
        parts = target.path.strip("/").split("/")
        route = parts[0]
        try:
            if route == "raw":
                self._reply(200, b"plain payload")
            elif route == "gzip":
                self._reply(200, gzip.compress(GZIP_PLAIN), {"Content-Encoding": "gzip"})
            elif route == "deflate":
                self._reply(200, zlib.compress(DEFLATE_PLAIN), {"Content-Encoding": "deflate"})
            elif route == "badgzip":
                self._reply(200, b"definitely not gzip", {"Content-Encoding": "gzip"})
            elif route == "status":
                self._reply(int(parts[1]), b"boom")
            elif route == "sleep":
                time.sleep(float(parts[1]))
                self._reply(200, b"late")
            elif route == "drip":
                self._drip(int(parts[1]), float(parts[2]))
            elif route == "redirect":
                self.send_response(302)
                self.send_header("Location", query["to"][0])
                self.send_header("Content-Length", "0")
                self.end_headers()
            elif route == "big":
                self._reply(200, b"x" * int(parts[1]))
            else:
                self._reply(200, b"ok")
        except (BrokenPipeError, ConnectionResetError):
            # Client gave up (deadline or cancellation)
            pass

    def _reply(self, status, body, headers=None):
        self.send_response(status)
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _drip(self, size, interval):
        self.send_response(200)
        self.send_header("Content-Length", str(size))
        self.end_headers()
        for _ in range(size):
            self.wfile.write(b"d")
            self.wfile.flush()
            time.sleep(interval)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_PATCH = _handle
    do_DELETE = _handle

    def log_message(self, format, *args):
        pass


class LocalServer:
    def __init__(self, server: ThreadingHTTPServer):
        self._server = server
        host, port = server.server_address[:2]
        self.base_url = f"http://{host}:{port}"

    def url(self, path: str) -> str:
        return self.base_url + path

    @property
    def requests(self) -> List[RecordedRequest]:
        return self._server.recorded

    @property
    def last(self) -> RecordedRequest:
        return self._server.recorded[-1]


@contextmanager
def running_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), RecordingHandler)
    server.daemon_threads = True
    server.recorded = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield LocalServer(server)
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def http_server():
    """Start a threaded HTTP server on an ephemeral localhost port."""
    with running_server() as server:
        yield server


@pytest.fixture
def other_server():
    """A second server, for requests that cross origins."""
    with running_server() as server:
        yield server


@pytest.fixture
def client():
    """An HttpClient with a generous timeout."""
    from pooledhttp.http_client import HttpClient, HTTPClientConfig

    with HttpClient(HTTPClientConfig(timeout=10)) as c:
        yield c
