import logging
import math
import socket
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

_local = threading.local()


def keep_alive_socket_options(interval: float) -> List[Tuple[int, int, int]]:
    """Socket options enabling TCP keep-alive probes every `interval` seconds.

    TCP_KEEPIDLE/TCP_KEEPINTVL are only set where the platform defines them.
    """
    if not interval or interval <= 0:
        return []
    seconds = max(1, math.ceil(interval))
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, seconds))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, seconds))
    return options


class ConnectionWatch:
    """Sockets used by one request, so another thread can abort it.

    abort() shuts the sockets down, which wakes a recv() blocked on headers or
    body in the requesting thread. Sockets attached after abort() are shut down
    on the spot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sockets: List[socket.socket] = []
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def attach(self, sock: Optional[socket.socket]):
        if not isinstance(sock, socket.socket):
            return
        with self._lock:
            if not self._aborted:
                self._sockets.append(sock)
                return
        _shutdown(sock)

    def abort(self):
        with self._lock:
            self._aborted = True
            sockets, self._sockets = self._sockets, []
        for sock in sockets:
            _shutdown(sock)

    def detach(self):
        with self._lock:
            self._sockets = []


def _shutdown(sock: socket.socket):
    try:
        # Plain socket.shutdown, bypassing SSLSocket's which drops the TLS object
        socket.socket.shutdown(sock, socket.SHUT_RDWR)
    except OSError:
        pass


@contextmanager
def watching(watch: ConnectionWatch) -> Iterator[ConnectionWatch]:
    """Report every connection the current thread uses to `watch`."""
    previous = getattr(_local, "watch", None)
    _local.watch = watch
    try:
        yield watch
    finally:
        _local.watch = previous


def _report(sock):
    watch = getattr(_local, "watch", None)
    if watch is not None:
        watch.attach(sock)


class WatchedHTTPConnection(HTTPConnection):
    def connect(self):
        super().connect()
        _report(self.sock)


class WatchedHTTPSConnection(HTTPSConnection):
    def connect(self):
        super().connect()
        _report(self.sock)


class WatchedHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = WatchedHTTPConnection

    def _get_conn(self, timeout=None):
        conn = super()._get_conn(timeout=timeout)
        # Reused connections are already connected
        _report(getattr(conn, "sock", None))
        return conn


class WatchedHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = WatchedHTTPSConnection

    def _get_conn(self, timeout=None):
        conn = super()._get_conn(timeout=timeout)
        _report(getattr(conn, "sock", None))
        return conn


class PooledHTTPAdapter(HTTPAdapter):
    """HTTPAdapter with keep-alive sockets and idle pool expiry.

    urllib3 keeps idle connections forever, so the adapter remembers when each
    origin was last used and drops that origin's pools before the next request
    if they sat idle longer than `idle_conn_timeout`. Expiry is checked lazily
    on send; no reaper thread is started.

    Pools hand out watched connections: while a request runs inside
    watching(), every socket it uses is reported to the active ConnectionWatch.
    Redirect hops go through send() again, so their origins are tracked too.
    """

    def __init__(self, pool_connections: int = 10, pool_maxsize: int = 10,
                 keep_alive: float = 0, idle_conn_timeout: float = 0):
        # init_poolmanager runs inside HTTPAdapter.__init__
        self.keep_alive = keep_alive
        self.idle_conn_timeout = idle_conn_timeout
        self._last_used: Dict[Tuple[str, str, int], float] = {}
        self._idle_lock = threading.Lock()
        super().__init__(pool_connections=pool_connections, pool_maxsize=pool_maxsize, max_retries=0)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        extra = keep_alive_socket_options(self.keep_alive)
        if extra:
            pool_kwargs["socket_options"] = HTTPConnection.default_socket_options + extra
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": WatchedHTTPConnectionPool,
            "https": WatchedHTTPSConnectionPool,
        }

    def send(self, request, **kwargs):
        self._expire_idle(request.url)
        try:
            return super().send(request, **kwargs)
        finally:
            self._touch(request.url)

    @staticmethod
    def _origin(url: str) -> Tuple[str, str, int]:
        parts = urlsplit(url)
        scheme = (parts.scheme or "http").lower()
        host = (parts.hostname or "").lower()
        return scheme, host, parts.port or DEFAULT_PORTS.get(scheme, 80)

    def _touch(self, url: str):
        with self._idle_lock:
            self._last_used[self._origin(url)] = time.monotonic()

    def _expire_idle(self, url: str):
        if not self.idle_conn_timeout or self.idle_conn_timeout <= 0:
            return
        origin = self._origin(url)
        with self._idle_lock:
            last = self._last_used.get(origin)
            if last is None or time.monotonic() - last < self.idle_conn_timeout:
                return
            del self._last_used[origin]

        pools = self.poolmanager.pools
        stale = [key for key in list(pools.keys())
                 if (key.key_scheme, key.key_host, key.key_port) == origin]
        for key in stale:
            try:
                # Disposing closes the pool's idle connections
                del pools[key]
            except KeyError:
                pass
        if stale:
            logger.debug(f"Dropped {len(stale)} idle pool(s) for {origin[0]}://{origin[1]}:{origin[2]}")
