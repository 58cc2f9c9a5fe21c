"""Signing / verification capabilities.

A capability is bound to one key and algorithm and follows a single-use
construct -> update()* -> finalize lifecycle. Capabilities are NOT reusable
across operations: create a fresh one for every serialize/deserialize call
(or reset it yourself). The writers in this package guarantee they never call
a capability again once finish() has returned, on success or failure.

Any object exposing the same methods can be passed to the writers; the ABCs
below exist for the shared convenience methods and for type hints.
"""

from __future__ import annotations
import abc
from typing import Any, BinaryIO, Mapping, Optional, Union


Payload = Union[bytes, bytearray, memoryview, BinaryIO]


class Sign(abc.ABC):
    @abc.abstractmethod
    def update(self, data: bytes) -> None:
        """Feed the next slice of the signing input."""

    @abc.abstractmethod
    def finalize_sign(self) -> bytes:
        """Return the raw signature over everything fed so far."""

    def sign_detached(
        self,
        algorithm: str,
        header: Optional[Mapping[str, Any]],
        payload: Payload,
    ) -> str:
        """Sign ``payload`` and return the compact detached JWS."""
        from .encode import serialize

        return serialize(algorithm, header, payload, self)


class Verify(abc.ABC):
    @abc.abstractmethod
    def update(self, data: bytes) -> None:
        """Feed the next slice of the signing input."""

    @abc.abstractmethod
    def finalize_verify(self, signature: bytes) -> bool:
        """Return True if ``signature`` matches the bytes fed so far."""

    def verify_detached(self, token: Union[str, bytes], payload: Payload):
        """Verify ``token`` against ``payload`` and return its header."""
        from .decode import deserialize

        return deserialize(token, payload, self)
