"""
Unit tests for pooledhttp.http_client.adapter module.
"""

import socket
import threading
import time

from pooledhttp.http_client import Context
from pooledhttp.http_client.adapter import (
    ConnectionWatch,
    PooledHTTPAdapter,
    keep_alive_socket_options,
    watching,
)


def origins(adapter):
    return {(key.key_scheme, key.key_host, key.key_port) for key in adapter.poolmanager.pools.keys()}


class TestKeepAliveOptions:
    def test_disabled_when_zero(self):
        assert keep_alive_socket_options(0) == []

    def test_enables_keepalive(self):
        options = keep_alive_socket_options(15)

        assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
        if hasattr(socket, "TCP_KEEPINTVL"):
            assert (socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 15) in options

    def test_sub_second_interval_rounds_up(self):
        if hasattr(socket, "TCP_KEEPIDLE"):
            assert (socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, 1) in keep_alive_socket_options(0.2)

    def test_options_reach_pool_manager(self):
        adapter = PooledHTTPAdapter(keep_alive=30)

        options = adapter.poolmanager.connection_pool_kw["socket_options"]

        assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options
        # urllib3's own defaults are kept
        assert (socket.IPPROTO_TCP, socket.TCP_NODELAY, 1) in options


class TestIdleExpiry:
    """Tests for lazy per-origin pool expiry."""

    def test_idle_pool_is_dropped(self, http_server):
        """Test that an origin idle past the timeout loses its pools."""
        from pooledhttp.http_client import HttpClient, HTTPClientConfig

        with HttpClient(HTTPClientConfig(idle_conn_timeout=0.1)) as client:
            client.get(Context.background(), http_server.url("/raw"))
            adapter = client._adapter
            origin = ("http", "127.0.0.1", int(http_server.base_url.rsplit(":", 1)[1]))
            assert origin in origins(adapter)

            time.sleep(0.2)
            adapter._expire_idle(http_server.url("/raw"))

            assert origin not in origins(adapter)
            # The next request rebuilds the pool
            assert client.get(Context.background(), http_server.url("/raw")) == b"plain payload"
            assert origin in origins(adapter)

    def test_recently_used_pool_is_kept(self, http_server):
        from pooledhttp.http_client import HttpClient, HTTPClientConfig

        with HttpClient(HTTPClientConfig(idle_conn_timeout=60)) as client:
            client.get(Context.background(), http_server.url("/raw"))
            before = origins(client._adapter)

            client._adapter._expire_idle(http_server.url("/raw"))

            assert origins(client._adapter) == before

    def test_no_expiry_when_disabled(self, http_server):
        from pooledhttp.http_client import HttpClient

        with HttpClient() as client:
            client.get(Context.background(), http_server.url("/raw"))
            client._adapter._last_used.clear()
            before = origins(client._adapter)

            client._adapter._expire_idle(http_server.url("/raw"))

            assert origins(client._adapter) == before

    def test_origin_normalization(self):
        assert PooledHTTPAdapter._origin("HTTPS://Example.COM/path") == ("https", "example.com", 443)
        assert PooledHTTPAdapter._origin("http://example.com:8080") == ("http", "example.com", 8080)


class TestConnectionWatch:
    """Tests for aborting the sockets a request uses."""

    def test_abort_wakes_blocked_recv(self):
        """Test that abort unblocks a recv waiting in another thread."""
        left, right = socket.socketpair()
        watch = ConnectionWatch()
        watch.attach(left)
        received = []

        def reader():
            received.append(left.recv(1))

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.1)
        watch.abort()
        thread.join(timeout=2)

        try:
            assert not thread.is_alive()
            assert received == [b""]
            assert watch.aborted
        finally:
            left.close()
            right.close()

    def test_attach_after_abort_shuts_down_at_once(self):
        left, right = socket.socketpair()
        watch = ConnectionWatch()
        watch.abort()

        watch.attach(left)

        try:
            assert left.recv(1) == b""
        finally:
            left.close()
            right.close()

    def test_detached_sockets_are_left_alone(self):
        left, right = socket.socketpair()
        watch = ConnectionWatch()
        watch.attach(left)
        watch.detach()

        watch.abort()

        try:
            right.sendall(b"z")
            assert left.recv(1) == b"z"
        finally:
            left.close()
            right.close()

    def test_non_sockets_are_ignored(self):
        watch = ConnectionWatch()
        watch.attach(None)
        watch.abort()

    def test_request_reports_its_socket(self, http_server):
        """Test pooled connections report to the active watch."""
        from pooledhttp.http_client import HttpClient

        watch = ConnectionWatch()
        with HttpClient() as client:
            request = client.build_request("GET", http_server.url("/raw"))
            with watching(watch):
                response = client._session.send(request, stream=True)
            response.close()

        assert len(watch._sockets) >= 1

    def test_no_watch_outside_context(self, http_server):
        from pooledhttp.http_client import HttpClient

        watch = ConnectionWatch()
        with watching(watch):
            pass
        with HttpClient() as client:
            client.get(None, http_server.url("/raw"))

        assert watch._sockets == []


class TestRedirectTracking:
    def test_redirect_target_origin_is_tracked(self, http_server, other_server):
        """Test each redirect hop records its own origin's last use."""
        from pooledhttp.http_client import HttpClient, HTTPClientConfig

        target = other_server.url("/raw")
        with HttpClient(HTTPClientConfig(idle_conn_timeout=60)) as client:
            body = client.get(None, http_server.url(f"/redirect?to={target}"))
            tracked = set(client._adapter._last_used)

        assert body == b"plain payload"
        assert PooledHTTPAdapter._origin(http_server.base_url) in tracked
        assert PooledHTTPAdapter._origin(other_server.base_url) in tracked
