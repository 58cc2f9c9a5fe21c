from __future__ import annotations
import base64
import re
from typing import Callable, Tuple, Union

from .errors import DecodeError, FormatError

_B64URL = re.compile(r"[A-Za-z0-9_-]*")

DOT = "."


def encode_segment(data: bytes) -> str:
    """Base64url-encode bytes without '=' padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def decode_segment(segment: str) -> bytes:
    """Decode an unpadded base64url segment with strict validation.

    Rejects padding, characters outside the URL-safe alphabet, impossible
    lengths and non-zero trailing bits, so every accepted segment maps to
    exactly one byte string.
    """
    if not isinstance(segment, str) or not _B64URL.fullmatch(segment):
        raise DecodeError("invalid base64url alphabet")
    if len(segment) % 4 == 1:
        raise DecodeError("invalid base64url length")
    try:
        data = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except Exception as e:
        raise DecodeError("invalid base64url") from e
    if encode_segment(data) != segment:
        raise DecodeError("non-canonical base64url")
    return data


def split_compact(token: Union[str, bytes]) -> Tuple[str, str, str]:
    """Split a compact JWS into (header, payload, signature) segments."""
    if isinstance(token, (bytes, bytearray, memoryview)):
        try:
            token = bytes(token).decode("ascii")
        except UnicodeDecodeError as e:
            raise FormatError("token must be ASCII text") from e
    if not isinstance(token, str):
        raise FormatError("token must be str or bytes")
    parts = token.split(DOT)
    if len(parts) != 3:
        raise FormatError(f"expected 3 segments, got {len(parts)}")
    return parts[0], parts[1], parts[2]


def assemble_compact(header_segment: str, signature_segment: str) -> str:
    return header_segment + DOT + "" + DOT + signature_segment


class SegmentEncoder:
    """Incremental base64url encoder.

    Only complete 3-byte groups are emitted by update(); flush() emits the
    unpadded tail. The concatenated output equals encode_segment() of the
    whole input.
    """

    def __init__(self, emit: Callable[[bytes], None]):
        self._emit = emit
        self._pending = b""

    def update(self, data: bytes) -> None:
        data = self._pending + data
        cut = len(data) - len(data) % 3
        self._pending = data[cut:]
        if cut:
            self._emit(encode_segment(data[:cut]).encode("ascii"))

    def flush(self) -> None:
        if self._pending:
            self._emit(encode_segment(self._pending).encode("ascii"))
            self._pending = b""
