"""Fuzz harness for detached JWS parsing and verification.

Goals:
  - Exercise token splitting, strict base64url decoding and header parsing
    with arbitrary input.
  - Drive a full streaming verification with a real HMAC verifier so the
    state machine sees both mismatching and (rarely) valid signatures.

Only JwsError subclasses are expected; anything else surfaces as a crash.
"""
from __future__ import annotations
import atheris
import sys

with atheris.instrument_imports():
    from detached_jws import DeserializeJwsWriter, JwsError
    from detached_jws.backends import HmacVerifier
    from cryptography.hazmat.primitives import hashes

_SECRET = b"fuzz-secret-0123456789abcdef0123"


def TestOneInput(data: bytes):  # noqa: N802 (Atheris entrypoint)
    fdp = atheris.FuzzedDataProvider(data)
    token = fdp.ConsumeUnicodeNoSurrogates(fdp.ConsumeIntInRange(0, 512))
    chunks = [fdp.ConsumeBytes(fdp.ConsumeIntInRange(0, 64)) for _ in range(3)]
    try:
        writer = DeserializeJwsWriter(
            token, lambda h: HmacVerifier(_SECRET, hashes.SHA256())
        )
        for c in chunks:
            writer.write(c)
        writer.finish()
    except JwsError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
