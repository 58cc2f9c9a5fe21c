"""JOSE header assembly for detached, unencoded-payload signatures.

Protocol fields are applied after the caller's fields, so they always win:
- ``alg`` names the signing algorithm.
- ``b64: false`` (RFC 7797) marks the payload as unencoded and detached.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ParseError

logger = logging.getLogger(__name__)

JwsHeader = Dict[str, Any]

ALG = "alg"
B64 = "b64"
RESERVED = (ALG, B64)


def build_header(custom_fields: Optional[Mapping[str, Any]], algorithm: str) -> JwsHeader:
    """Merge caller fields with the protocol fields, keeping insertion order.

    A reserved key already present keeps its position and takes the protocol
    value; otherwise it is appended.
    """
    if not isinstance(algorithm, str) or not algorithm:
        raise ValueError("algorithm must be a non-empty string")
    header: JwsHeader = dict(custom_fields or {})
    for k in header:
        if not isinstance(k, str):
            raise ValueError("header keys must be strings")
    for k in RESERVED:
        if k in header:
            logger.warning("overriding caller-supplied protected header field %r", k)
    header[ALG] = algorithm
    header[B64] = False
    return header


def serialize_header(header: Mapping[str, Any]) -> bytes:
    return json.dumps(header, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _no_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    for k, v in pairs:
        if k in obj:
            raise ParseError(f"duplicate header member {k!r}")
        obj[k] = v
    return obj


def parse_header(data: bytes) -> JwsHeader:
    """Parse decoded header bytes into an ordered mapping."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError("header is not valid UTF-8") from e
    try:
        obj = json.loads(text, object_pairs_hook=_no_duplicates)
    except (ValueError, RecursionError) as e:
        raise ParseError("header is not valid JSON") from e
    if not isinstance(obj, dict):
        raise ParseError("header must be a JSON object")
    return obj
