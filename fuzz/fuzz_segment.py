"""Fuzz harness for the base64url segment codec.

Invariants checked:
  - every accepted segment re-encodes to itself (canonical decoding);
  - encode_segment output always decodes back to the input;
  - SegmentEncoder fed in arbitrary chunks matches one-shot encoding.
"""
from __future__ import annotations
import atheris
import sys

with atheris.instrument_imports():
    from detached_jws.compact import (
        SegmentEncoder,
        decode_segment,
        encode_segment,
    )
    from detached_jws.errors import DecodeError


def TestOneInput(data: bytes):  # noqa: N802 (Atheris entrypoint)
    text = data.decode("latin-1")
    try:
        raw = decode_segment(text)
    except DecodeError:
        pass
    else:
        assert encode_segment(raw) == text

    assert decode_segment(encode_segment(data)) == data

    out = bytearray()
    enc = SegmentEncoder(out.extend)
    step = (data[0] % 7 + 1) if data else 1
    for i in range(0, len(data), step):
        enc.update(data[i : i + step])
    enc.flush()
    assert out.decode("ascii") == encode_segment(data)


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
