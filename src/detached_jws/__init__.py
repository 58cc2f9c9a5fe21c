"""Detached JSON Web Signature (RFC 7515 compact form, RFC 7797 unencoded payload).

A detached JWS is ``base64url(header) ".." base64url(signature)``: the payload
is signed but travels out of band. Payloads are streamed through the signer
or verifier, so they never need to be held in memory.

    token = serialize("PS256", {"custom": "custom_value"}, payload, signer)
    header = deserialize(token, payload, verifier)
"""

from .capabilities import Sign, Verify
from .decode import DeserializeJwsWriter, deserialize, deserialize_selector
from .encode import SerializeJwsWriter, serialize
from .errors import (
    DecodeError,
    FormatError,
    JwsError,
    ParseError,
    SigningError,
    UnsupportedAlgorithmError,
    VerificationError,
    WriteAfterFinishError,
)
from .header import JwsHeader
from .state import StreamState

__all__ = [
    "DecodeError",
    "DeserializeJwsWriter",
    "FormatError",
    "JwsError",
    "JwsHeader",
    "ParseError",
    "SerializeJwsWriter",
    "Sign",
    "SigningError",
    "StreamState",
    "UnsupportedAlgorithmError",
    "Verify",
    "VerificationError",
    "WriteAfterFinishError",
    "deserialize",
    "deserialize_selector",
    "serialize",
]
