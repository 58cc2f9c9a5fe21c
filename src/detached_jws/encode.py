from __future__ import annotations
import logging
from typing import Any, BinaryIO, Iterator, Mapping, Optional

from .capabilities import Payload, Sign
from .compact import DOT, assemble_compact, encode_segment
from .errors import JwsError, SigningError
from .header import build_header, serialize_header
from .settings import settings
from .state import StreamState, _StatefulWriter

logger = logging.getLogger(__name__)

_DOT_BYTES = DOT.encode("ascii")


def iter_payload(payload: Payload, chunk_size: Optional[int] = None) -> Iterator[bytes]:
    """Yield a payload in bounded chunks.

    ``payload`` is either a bytes-like object or a binary stream with read().
    ``chunk_size`` must be positive; None means ``settings.chunk_size``.
    """
    if chunk_size is None:
        chunk_size = settings.chunk_size
    elif chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size!r}")
    return _chunks(payload, chunk_size)


def _chunks(payload: Payload, size: int) -> Iterator[bytes]:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        view = memoryview(payload).cast("B")
        for i in range(0, len(view), size):
            yield bytes(view[i : i + size])
        return
    while True:
        chunk = payload.read(size)
        if not chunk:
            return
        yield bytes(chunk)


class SerializeJwsWriter(_StatefulWriter):
    """Writer that signs a payload as it is written and yields a detached JWS.

    The optional ``sink`` receives ``header_b64 + "."`` on construction and
    then every payload byte unchanged, i.e. exactly the JWS signing input.
    It is flushed by finish() before the token is released; a failing flush
    fails the writer. The sink stays reachable through ``.sink``.

    Example::

        writer = SerializeJwsWriter("PS256", {"custom": "custom_value"}, signer)
        writer.write(bytes([0, 1, 2, 3]))
        writer.write(bytes([4, 5, 6]))
        token = writer.finish()
    """

    def __init__(
        self,
        algorithm: str,
        header: Optional[Mapping[str, Any]],
        signer: Sign,
        sink: Optional[BinaryIO] = None,
    ):
        self.header = build_header(header, algorithm)
        self.encoded_header = encode_segment(serialize_header(self.header))
        self.sink = sink
        self.token: Optional[str] = None
        self._signer = signer

        prefix = self.encoded_header.encode("ascii") + _DOT_BYTES
        try:
            signer.update(prefix)
        except JwsError:
            raise
        except Exception as e:
            raise SigningError("signer rejected protected header") from e
        if sink is not None:
            sink.write(prefix)
        self._state = StreamState.OPEN
        logger.debug("serializer open alg=%s", algorithm)

    def writable(self) -> bool:
        return self._state is StreamState.OPEN

    def write(self, data: bytes) -> int:
        self._ensure_open("write")
        data = bytes(data)
        try:
            self._signer.update(data)
        except JwsError:
            self._state = StreamState.FAILED
            raise
        except Exception as e:
            self._state = StreamState.FAILED
            raise SigningError("signer rejected payload bytes") from e
        if self.sink is not None:
            try:
                self.sink.write(data)
            except Exception:
                self._state = StreamState.FAILED
                raise
        return len(data)

    def flush(self) -> None:
        if self.sink is not None and hasattr(self.sink, "flush"):
            self.sink.flush()

    def finish(self) -> str:
        """Sign, assemble and return the compact token. Not retryable."""
        self._ensure_open("finish")
        try:
            signature = self._signer.finalize_sign()
        except JwsError:
            self._state = StreamState.FAILED
            raise
        except Exception as e:
            self._state = StreamState.FAILED
            raise SigningError("signing failed") from e
        if not isinstance(signature, (bytes, bytearray)):
            self._state = StreamState.FAILED
            raise SigningError("signer returned a non-bytes signature")
        self._signer = None
        token = assemble_compact(self.encoded_header, encode_segment(bytes(signature)))
        try:
            self.flush()
        except Exception:
            self._state = StreamState.FAILED
            raise
        self.token = token
        self._state = StreamState.FINISHED
        logger.debug("serializer finished signature_len=%d", len(signature))
        return self.token


def serialize(
    algorithm: str,
    header: Optional[Mapping[str, Any]],
    payload: Payload,
    signer: Sign,
    chunk_size: Optional[int] = None,
) -> str:
    """Sign ``payload`` with ``signer`` and return the compact detached JWS."""
    chunks = iter_payload(payload, chunk_size)
    writer = SerializeJwsWriter(algorithm, header, signer)
    for chunk in chunks:
        writer.write(chunk)
    return writer.finish()
