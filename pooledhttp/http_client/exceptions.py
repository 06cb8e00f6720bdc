"""
Custom exceptions for the pooled HTTP client.
"""

class HTTPClientError(Exception):
    """Base exception for all pooled HTTP client errors."""
    pass

class RequestBuildError(HTTPClientError):
    """Raised when a request cannot be constructed (bad URL, bad method)."""
    pass

class PayloadEncodingError(HTTPClientError):
    """Raised when a payload cannot be encoded for its content type."""
    pass

class TransportError(HTTPClientError):
    """Raised when the network call itself fails."""
    pass

class ContextError(HTTPClientError):
    """Base class for errors reported by an execution context."""
    pass

class CancelledError(ContextError):
    """Raised when the execution context was cancelled."""

    def __init__(self, message: str = "context canceled"):
        super().__init__(message)

class DeadlineExceededError(ContextError, TimeoutError):
    """Raised when the execution context deadline elapsed."""

    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)

class ServerError(HTTPClientError):
    """Raised for 5xx responses when the client is configured to surface them."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"Server returned status {status_code} for {url}")
        self.status_code = status_code
        self.url = url

class ResponseReadError(HTTPClientError):
    """Raised when the response body cannot be read."""
    pass

class ResponseDecodeError(ResponseReadError):
    """Raised when a gzip response body cannot be decompressed."""
    pass

class ResponseTooLargeError(ResponseReadError):
    """Raised when a response body grows past the configured cap."""

    def __init__(self, limit: int):
        super().__init__(f"Response body exceeds {limit} bytes")
        self.limit = limit
