import json
import logging
from typing import Any, Callable, Dict, Optional

from .exceptions import PayloadEncodingError
from .mime import MIME_JSON, MIME_POST_FORM

logger = logging.getLogger(__name__)


def _encode_form(payload: Any) -> Optional[bytes]:
    # Only pre-encoded text is accepted; anything else is sent without a body.
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return None


def _encode_json(payload: Any) -> bytes:
    document = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return (document + "\n").encode("utf-8")


ENCODERS: Dict[str, Callable[[Any], Optional[bytes]]] = {
    MIME_POST_FORM: _encode_form,
    MIME_JSON: _encode_json,
}


def encode_body(content_type: str, payload: Any,
                log: Optional[logging.Logger] = None, strict: bool = False) -> Optional[bytes]:
    """Encode `payload` into a request body for `content_type`.

    Args:
        content_type: Exact content-type string; only form and JSON have encoders
        payload: Value to encode
        log: Logger receiving encoding failures (default: module logger)
        strict: Raise instead of logging when the payload cannot be encoded

    Returns:
        The body bytes, or None when no body should be sent

    Raises:
        PayloadEncodingError: If strict and JSON encoding fails
    """
    encoder = ENCODERS.get(content_type)
    if encoder is None:
        return None

    try:
        return encoder(payload)
    except (TypeError, ValueError) as e:
        if strict:
            raise PayloadEncodingError(f"Failed to encode {content_type} payload: {e}") from e
        (log or logger).error(f"failed to marshal user payload: {e}")
        return None
