import zlib
from typing import Iterable, Iterator, Optional

from urllib3.exceptions import HTTPError as Urllib3HTTPError

from .context import Context
from .exceptions import ResponseDecodeError, ResponseReadError, ResponseTooLargeError

MIN_READ = 16 * 1024  # 16kb
GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipDecoder:
    """
    Incremental gzip decompressor.
    Handles concatenated gzip members and rejects truncated streams.
    """

    def __init__(self):
        self._obj = zlib.decompressobj(GZIP_WBITS)
        self._fed = False

    def decompress(self, data: bytes) -> bytes:
        out = []
        try:
            while data:
                self._fed = True
                if self._obj.eof:
                    # Next member of a multi-member stream
                    self._obj = zlib.decompressobj(GZIP_WBITS)
                out.append(self._obj.decompress(data))
                data = self._obj.unused_data
        except zlib.error as e:
            raise ResponseDecodeError(f"Invalid gzip response body: {e}") from e
        return b"".join(out)

    def flush(self) -> bytes:
        if not self._fed:
            raise ResponseDecodeError("Invalid gzip response body: empty stream")
        try:
            tail = self._obj.flush()
        except zlib.error as e:
            raise ResponseDecodeError(f"Invalid gzip response body: {e}") from e
        if not self._obj.eof:
            raise ResponseDecodeError("Invalid gzip response body: unexpected end of stream")
        return tail

    def decode_chunks(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        for chunk in chunks:
            data = self.decompress(chunk)
            if data:
                yield data
        tail = self.flush()
        if tail:
            yield tail


def read_all(chunks: Iterable[bytes], ctx: Optional[Context] = None, max_bytes: int = 0) -> bytes:
    """Materialize a chunked body into memory.

    The context is checked before every chunk so a cancelled or expired
    context stops the read.

    Args:
        chunks: Iterable of body chunks
        ctx: Optional execution context
        max_bytes: Maximum body size in bytes, 0 for no limit

    Returns:
        The complete body

    Raises:
        ResponseTooLargeError: If the body grows past max_bytes
        ResponseReadError: If the underlying stream fails
        ContextError: If the context ended before the body was fully read
    """
    buffer = bytearray()
    iterator = iter(chunks)

    while True:
        err = ctx.err() if ctx is not None else None
        if err is not None:
            raise err

        try:
            chunk = next(iterator)
        except StopIteration:
            break
        except Exception as e:
            # An aborted socket fails the stream in many ways; the context says why
            err = ctx.err() if ctx is not None else None
            if err is not None:
                raise err from e
            if not isinstance(e, (Urllib3HTTPError, OSError, ValueError)):
                raise
            raise ResponseReadError(f"Failed to read response body: {e}") from e

        buffer += chunk
        if max_bytes and len(buffer) > max_bytes:
            raise ResponseTooLargeError(max_bytes)

    # A response closed by cancellation can look like a clean end of stream
    err = ctx.err() if ctx is not None else None
    if err is not None:
        raise err
    return bytes(buffer)
