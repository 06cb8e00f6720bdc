from .client import HttpClient
from .config import HTTPClientConfig
from .context import Context
from .body import encode_body
from .io import GzipDecoder, read_all
from .mime import (
    MIME_JSON,
    MIME_HTML,
    MIME_XML,
    MIME_XML2,
    MIME_PLAIN,
    MIME_POST_FORM,
    MIME_MULTIPART_POST_FORM,
    MIME_PROTOBUF,
    MIME_MSGPACK,
    MIME_MSGPACK2,
)
from .exceptions import (
    HTTPClientError,
    RequestBuildError,
    PayloadEncodingError,
    TransportError,
    ContextError,
    CancelledError,
    DeadlineExceededError,
    ServerError,
    ResponseReadError,
    ResponseDecodeError,
    ResponseTooLargeError,
)
from .version import __version__

__all__ = [
    "HttpClient",
    "HTTPClientConfig",
    "Context",
    "encode_body",
    "GzipDecoder",
    "read_all",
    "MIME_JSON",
    "MIME_HTML",
    "MIME_XML",
    "MIME_XML2",
    "MIME_PLAIN",
    "MIME_POST_FORM",
    "MIME_MULTIPART_POST_FORM",
    "MIME_PROTOBUF",
    "MIME_MSGPACK",
    "MIME_MSGPACK2",
    "HTTPClientError",
    "RequestBuildError",
    "PayloadEncodingError",
    "TransportError",
    "ContextError",
    "CancelledError",
    "DeadlineExceededError",
    "ServerError",
    "ResponseReadError",
    "ResponseDecodeError",
    "ResponseTooLargeError",
    "__version__",
]
