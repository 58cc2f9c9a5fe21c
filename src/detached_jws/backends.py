"""Concrete capabilities over ``cryptography`` and PyNaCl.

RSA and ECDSA hash the signing input incrementally and sign the digest
(``Prehashed``), so payloads are never buffered. Ed25519 (PyNaCl) has no
prehash mode and buffers the signing input until finalize.
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Mapping, Optional, Tuple, Union

import nacl.exceptions
import nacl.signing
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa, utils

from .capabilities import Sign, Verify
from .errors import UnsupportedAlgorithmError
from .header import ALG, JwsHeader

logger = logging.getLogger(__name__)

_HASHES = {
    "256": hashes.SHA256,
    "384": hashes.SHA384,
    "512": hashes.SHA512,
}

_CURVES = {
    "ES256": ec.SECP256R1,
    "ES384": ec.SECP384R1,
    "ES512": ec.SECP521R1,
}


def _hash_for(alg: str) -> hashes.HashAlgorithm:
    return _HASHES[alg[-3:]]()


def _rsa_padding(alg: str, algorithm: hashes.HashAlgorithm):
    if alg.startswith("PS"):
        return padding.PSS(mgf=padding.MGF1(algorithm), salt_length=algorithm.digest_size)
    return padding.PKCS1v15()


class HmacSigner(Sign):
    def __init__(self, key: bytes, algorithm: hashes.HashAlgorithm):
        self._mac = hmac.HMAC(key, algorithm)

    def update(self, data: bytes) -> None:
        self._mac.update(data)

    def finalize_sign(self) -> bytes:
        return self._mac.finalize()


class HmacVerifier(Verify):
    def __init__(self, key: bytes, algorithm: hashes.HashAlgorithm):
        self._mac = hmac.HMAC(key, algorithm)

    def update(self, data: bytes) -> None:
        self._mac.update(data)

    def finalize_verify(self, signature: bytes) -> bool:
        try:
            self._mac.verify(signature)
            return True
        except InvalidSignature:
            return False


class RsaSigner(Sign):
    """RSASSA-PKCS1-v1_5 (RS*) or RSASSA-PSS (PS*) over a streamed digest."""

    def __init__(self, key: rsa.RSAPrivateKey, alg: str):
        self._key = key
        self._algorithm = _hash_for(alg)
        self._padding = _rsa_padding(alg, self._algorithm)
        self._digest = hashes.Hash(self._algorithm)

    def update(self, data: bytes) -> None:
        self._digest.update(data)

    def finalize_sign(self) -> bytes:
        return self._key.sign(
            self._digest.finalize(), self._padding, utils.Prehashed(self._algorithm)
        )


class RsaVerifier(Verify):
    def __init__(self, key: Union[rsa.RSAPublicKey, rsa.RSAPrivateKey], alg: str):
        if isinstance(key, rsa.RSAPrivateKey):
            key = key.public_key()
        self._key = key
        self._algorithm = _hash_for(alg)
        self._padding = _rsa_padding(alg, self._algorithm)
        self._digest = hashes.Hash(self._algorithm)

    def update(self, data: bytes) -> None:
        self._digest.update(data)

    def finalize_verify(self, signature: bytes) -> bool:
        try:
            self._key.verify(
                signature,
                self._digest.finalize(),
                self._padding,
                utils.Prehashed(self._algorithm),
            )
            return True
        except InvalidSignature:
            return False


def _coordinate_size(key) -> int:
    return (key.curve.key_size + 7) // 8


class EcdsaSigner(Sign):
    """ECDSA producing the JWS raw ``r || s`` signature form (not DER)."""

    def __init__(self, key: ec.EllipticCurvePrivateKey, alg: str):
        self._key = key
        self._algorithm = _hash_for(alg)
        self._digest = hashes.Hash(self._algorithm)

    def update(self, data: bytes) -> None:
        self._digest.update(data)

    def finalize_sign(self) -> bytes:
        der = self._key.sign(
            self._digest.finalize(), ec.ECDSA(utils.Prehashed(self._algorithm))
        )
        r, s = utils.decode_dss_signature(der)
        n = _coordinate_size(self._key)
        return r.to_bytes(n, "big") + s.to_bytes(n, "big")


class EcdsaVerifier(Verify):
    def __init__(
        self, key: Union[ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey], alg: str
    ):
        if isinstance(key, ec.EllipticCurvePrivateKey):
            key = key.public_key()
        self._key = key
        self._algorithm = _hash_for(alg)
        self._digest = hashes.Hash(self._algorithm)

    def update(self, data: bytes) -> None:
        self._digest.update(data)

    def finalize_verify(self, signature: bytes) -> bool:
        digest = self._digest.finalize()
        n = _coordinate_size(self._key)
        if len(signature) != 2 * n:
            return False
        r = int.from_bytes(signature[:n], "big")
        s = int.from_bytes(signature[n:], "big")
        try:
            self._key.verify(
                utils.encode_dss_signature(r, s),
                digest,
                ec.ECDSA(utils.Prehashed(self._algorithm)),
            )
            return True
        except InvalidSignature:
            return False


class Ed25519Signer(Sign):
    def __init__(self, key: Union[nacl.signing.SigningKey, bytes]):
        if not isinstance(key, nacl.signing.SigningKey):
            key = nacl.signing.SigningKey(bytes(key))
        self._key = key
        self._buf = bytearray()

    def update(self, data: bytes) -> None:
        self._buf += data

    def finalize_sign(self) -> bytes:
        return self._key.sign(bytes(self._buf)).signature


class Ed25519Verifier(Verify):
    def __init__(self, key: Union[nacl.signing.VerifyKey, nacl.signing.SigningKey, bytes]):
        if isinstance(key, nacl.signing.SigningKey):
            key = key.verify_key
        elif not isinstance(key, nacl.signing.VerifyKey):
            key = nacl.signing.VerifyKey(bytes(key))
        self._key = key
        self._buf = bytearray()

    def update(self, data: bytes) -> None:
        self._buf += data

    def finalize_verify(self, signature: bytes) -> bool:
        if len(signature) != 64:
            return False
        try:
            self._key.verify(bytes(self._buf), signature)
            return True
        except nacl.exceptions.BadSignatureError:
            return False


def _family(alg: str) -> str:
    if alg in ("HS256", "HS384", "HS512"):
        return "hmac"
    if alg in ("RS256", "RS384", "RS512", "PS256", "PS384", "PS512"):
        return "rsa"
    if alg in _CURVES:
        return "ecdsa"
    if alg == "EdDSA":
        return "ed25519"
    raise UnsupportedAlgorithmError(f"unsupported algorithm: {alg!r}")


SUPPORTED_ALGORITHMS: Tuple[str, ...] = (
    "HS256", "HS384", "HS512",
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
    "EdDSA",
)


def _check_curve(key, alg: str) -> None:
    if not isinstance(key.curve, _CURVES[alg]):
        raise TypeError(f"{alg} requires curve {_CURVES[alg].name}")


def signer_for(alg: str, key: Any) -> Sign:
    """Return a fresh signing capability for ``alg`` bound to ``key``."""
    family = _family(alg)
    if family == "hmac":
        if not isinstance(key, (bytes, bytearray)):
            raise TypeError(f"{alg} requires a bytes secret")
        return HmacSigner(bytes(key), _hash_for(alg))
    if family == "rsa":
        if not isinstance(key, rsa.RSAPrivateKey):
            raise TypeError(f"{alg} requires an RSA private key")
        return RsaSigner(key, alg)
    if family == "ecdsa":
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise TypeError(f"{alg} requires an EC private key")
        _check_curve(key, alg)
        return EcdsaSigner(key, alg)
    return Ed25519Signer(key)


def verifier_for(alg: str, key: Any) -> Verify:
    """Return a fresh verification capability for ``alg`` bound to ``key``."""
    family = _family(alg)
    if family == "hmac":
        if not isinstance(key, (bytes, bytearray)):
            raise TypeError(f"{alg} requires a bytes secret")
        return HmacVerifier(bytes(key), _hash_for(alg))
    if family == "rsa":
        if not isinstance(key, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
            raise TypeError(f"{alg} requires an RSA key")
        return RsaVerifier(key, alg)
    if family == "ecdsa":
        if not isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
            raise TypeError(f"{alg} requires an EC key")
        _check_curve(key, alg)
        return EcdsaVerifier(key, alg)
    return Ed25519Verifier(key)


def resolver_for_keys(
    keys: Mapping[Optional[str], Any],
    algorithms: Optional[Tuple[str, ...]] = None,
) -> Callable[[JwsHeader], Optional[Verify]]:
    """Build a resolver that picks the verification key by header ``kid``.

    ``keys`` maps key ids to keys; a ``None`` entry is used for tokens that
    carry no ``kid``. Unknown key ids and algorithms outside ``algorithms``
    (default: all supported) resolve to None, which rejects the token.
    """
    allowed = algorithms or SUPPORTED_ALGORITHMS

    def resolve(header: JwsHeader) -> Optional[Verify]:
        alg = header.get(ALG)
        kid = header.get("kid")
        if kid is not None and not isinstance(kid, str):
            return None
        if alg not in allowed:
            logger.info("rejecting token with disallowed alg=%r", alg)
            return None
        if kid not in keys:
            logger.info("rejecting token with unknown kid=%r", kid)
            return None
        try:
            return verifier_for(alg, keys[kid])
        except (TypeError, ValueError):
            logger.info("key %r does not fit alg=%r", kid, alg)
            return None

    return resolve
