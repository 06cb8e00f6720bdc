from dataclasses import dataclass, field
from typing import Dict

from .version import __version__

@dataclass(frozen=True)
class HTTPClientConfig:
    """
    Configuration for the HTTP client.

    Zero values mean "no limit" for every size and duration field. Values are
    handed to requests/urllib3 unchanged; nothing here is validated.

    Attributes:
        max_idle_conns_per_host: Pool size kept per origin (default: 0, unbounded)
        dial_timeout: TCP connect timeout in seconds (default: 0, none)
        timeout: Overall request deadline in seconds (default: 0, none)
        keep_alive: TCP keep-alive probe interval in seconds (default: 0, OS default)
        idle_conn_timeout: Seconds an origin's pool may sit unused before it is
            dropped (default: 0, never)
        insecure_skip_verify: Accept self-signed or untrusted TLS certificates
            (default: False). Anyone on the network path can then impersonate
            the server, so enable only for trusted internal endpoints.
        max_response_bytes: Cap on a materialized response body (default: 0, none)
        raise_on_server_error: Raise ServerError for 5xx responses instead of
            returning an empty body (default: False)
        strict_encoding: Raise PayloadEncodingError when a JSON payload cannot
            be encoded instead of sending no body (default: False)
        pool_connections: Number of origin pools cached by the adapter (default: 10)
        headers: Default HTTP headers sent with every request
    """
    max_idle_conns_per_host: int = 0
    dial_timeout: float = 0
    timeout: float = 0
    keep_alive: float = 0
    idle_conn_timeout: float = 0
    insecure_skip_verify: bool = False
    max_response_bytes: int = 0
    raise_on_server_error: bool = False
    strict_encoding: bool = False
    pool_connections: int = 10
    headers: Dict[str, str] = field(default_factory=lambda: {
        'User-Agent': f'pooledhttp/{__version__}',
        'Accept-Encoding': 'gzip',
    })
