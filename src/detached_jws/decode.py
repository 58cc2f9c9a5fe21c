from __future__ import annotations
import logging
from typing import Callable, Optional, Union

from .capabilities import Payload, Verify
from .compact import DOT, SegmentEncoder, decode_segment, split_compact
from .encode import iter_payload
from .errors import (
    FormatError,
    JwsError,
    ParseError,
    UnsupportedAlgorithmError,
    VerificationError,
)
from .header import ALG, B64, JwsHeader, parse_header
from .state import StreamState, _StatefulWriter

logger = logging.getLogger(__name__)

Resolver = Callable[[JwsHeader], Optional[Verify]]

_DOT_BYTES = DOT.encode("ascii")


class DeserializeJwsWriter(_StatefulWriter):
    """Writer that verifies a detached JWS against payload bytes as they arrive.

    The resolver picks the verifier from the decoded header (``alg``, ``kid``,
    ...) and returns None to reject the token. The verifier is fed the header
    segment exactly as received, then ``"."``, then the payload.

    Tokens with ``b64: false`` sign the raw payload. Tokens without the
    marker (or with ``b64: true``) follow the RFC 7515 default and sign the
    base64url-encoded payload; that encoding is applied on the fly.

    Example::

        writer = DeserializeJwsWriter(token, lambda h: verifier)
        writer.write(bytes([0, 1, 2, 3]))
        writer.write(bytes([4, 5, 6]))
        header = writer.finish()
    """

    def __init__(self, token: Union[str, bytes], resolver: Resolver):
        header_segment, payload_segment, signature_segment = split_compact(token)
        if payload_segment:
            raise FormatError("payload segment must be empty for a detached JWS")

        header = parse_header(decode_segment(header_segment))
        if not isinstance(header.get(ALG), str):
            raise ParseError("header 'alg' must be a string")
        encoded_payload = header.get(B64, True)
        if not isinstance(encoded_payload, bool):
            raise ParseError("header 'b64' must be a boolean")

        try:
            verifier = resolver(header)
        except LookupError as e:
            raise UnsupportedAlgorithmError(f"no verifier for alg={header[ALG]!r}") from e
        if verifier is None:
            raise UnsupportedAlgorithmError(f"no verifier for alg={header[ALG]!r}")

        try:
            verifier.update(header_segment.encode("ascii") + _DOT_BYTES)
        except JwsError:
            raise
        except Exception as e:
            raise VerificationError("verifier rejected protected header") from e

        self._header = header
        self._signature_segment = signature_segment
        self._verifier = verifier
        self._encoder: Optional[SegmentEncoder] = None
        if encoded_payload:
            self._encoder = SegmentEncoder(verifier.update)
        self._state = StreamState.OPEN
        logger.debug("deserializer open alg=%s b64=%s", header[ALG], encoded_payload)

    @property
    def unverified_header(self) -> JwsHeader:
        """Header as decoded from the token; not yet authenticated."""
        return self._header

    def writable(self) -> bool:
        return self._state is StreamState.OPEN

    def write(self, data: bytes) -> int:
        self._ensure_open("write")
        data = bytes(data)
        try:
            if self._encoder is not None:
                self._encoder.update(data)
            else:
                self._verifier.update(data)
        except JwsError:
            self._state = StreamState.FAILED
            raise
        except Exception as e:
            self._state = StreamState.FAILED
            raise VerificationError("verifier rejected payload bytes") from e
        return len(data)

    def flush(self) -> None:
        pass

    def finish(self) -> JwsHeader:
        """Check the signature and return the verified header. Not retryable."""
        self._ensure_open("finish")
        verifier, self._verifier = self._verifier, None
        try:
            signature = decode_segment(self._signature_segment)
            if self._encoder is not None:
                self._encoder.flush()
            ok = verifier.finalize_verify(signature)
        except JwsError:
            self._state = StreamState.FAILED
            raise
        except Exception as e:
            self._state = StreamState.FAILED
            raise VerificationError("verification failed") from e
        if not ok:
            self._state = StreamState.FAILED
            logger.debug("signature mismatch alg=%s", self._header[ALG])
            raise VerificationError("incorrect signature")
        self._state = StreamState.FINISHED
        return self._header


def deserialize_selector(
    token: Union[str, bytes],
    payload: Payload,
    resolver: Resolver,
    chunk_size: Optional[int] = None,
) -> JwsHeader:
    """Verify ``token`` against ``payload`` with a verifier picked by ``resolver``."""
    chunks = iter_payload(payload, chunk_size)
    writer = DeserializeJwsWriter(token, resolver)
    for chunk in chunks:
        writer.write(chunk)
    return writer.finish()


def deserialize(
    token: Union[str, bytes],
    payload: Payload,
    verifier: Verify,
    chunk_size: Optional[int] = None,
) -> JwsHeader:
    """Verify ``token`` against ``payload`` with a single verifier."""
    return deserialize_selector(token, payload, lambda _header: verifier, chunk_size)
