from __future__ import annotations
import base64
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def _b64_field(v: str) -> str:
    try:
        base64.b64decode(v.encode("ascii"), validate=True)
    except Exception as e:
        raise ValueError("invalid base64") from e
    return v


class HmacKeyFile(BaseModel):
    """Shared-secret key file: ``{"key_id": ..., "secret_b64": ...}``."""

    model_config = ConfigDict(extra="ignore")

    key_id: Optional[str] = None
    secret_b64: str

    @field_validator("secret_b64")
    @classmethod
    def _secret_is_base64(cls, v):  # type: ignore[override]
        return _b64_field(v)

    @property
    def secret(self) -> bytes:
        return base64.b64decode(self.secret_b64)


class Ed25519KeyFile(BaseModel):
    """Ed25519 key file: ``{"key_id": ..., "sk_b64": ..., "pk_b64": ...}``.

    Either half may be missing; signing needs ``sk_b64`` (32-byte seed),
    verification needs ``pk_b64`` or derives it from ``sk_b64``.
    """

    model_config = ConfigDict(extra="ignore")

    key_id: Optional[str] = None
    sk_b64: Optional[str] = None
    pk_b64: Optional[str] = None

    @field_validator("sk_b64", "pk_b64")
    @classmethod
    def _keys_are_32_bytes(cls, v):  # type: ignore[override]
        if v is None:
            return v
        _b64_field(v)
        if len(base64.b64decode(v)) != 32:
            raise ValueError("Ed25519 keys must be 32 bytes")
        return v
