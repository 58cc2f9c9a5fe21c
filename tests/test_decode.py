import io

import pytest
from cryptography.hazmat.primitives import hashes

from detached_jws import (
    DecodeError,
    DeserializeJwsWriter,
    FormatError,
    ParseError,
    SerializeJwsWriter,
    StreamState,
    UnsupportedAlgorithmError,
    VerificationError,
    WriteAfterFinishError,
    deserialize,
    deserialize_selector,
    serialize,
)
from detached_jws.backends import HmacSigner, HmacVerifier, RsaSigner, RsaVerifier
from detached_jws.compact import encode_segment
from detached_jws.header import serialize_header
from tests._helpers import EchoSigner, EchoVerifier, flip

PAYLOAD = bytes([0, 1, 2, 3, 4, 5, 6])
KEY = b"0" * 32

# Token produced by a signer that echoes its input, over a header without the
# b64 marker (RFC 7515 default: payload base64url-encoded in the signing input).
LEGACY_TOKEN = (
    "eyJhbGciOiJ0ZXN0X2FsZ29yaXRobSIsImN1c3RvbSI6ImN1c3RvbV92YWx1ZSJ9.."
    "ZXlKaGJHY2lPaUowWlhOMFgyRnNaMjl5YVhSb2JTSXNJbU4xYzNSdmJTSTZJbU4xYzNSdmJWOTJZV3gxWlNKOS5BQUVDQXdRRkJn"
)


def _hs256_token(header=None, payload=PAYLOAD):
    return serialize("HS256", header or {}, payload, HmacSigner(KEY, hashes.SHA256()))


def _hs256_verifier():
    return HmacVerifier(KEY, hashes.SHA256())


def test_ps256_two_chunks(rsa_key):
    writer = SerializeJwsWriter("PS256", {"custom": "custom_value"}, RsaSigner(rsa_key, "PS256"))
    writer.write(bytes([0, 1, 2, 3]))
    writer.write(bytes([4, 5, 6]))
    token = writer.finish()

    reader = DeserializeJwsWriter(token, lambda h: RsaVerifier(rsa_key.public_key(), "PS256"))
    reader.write(bytes([0, 1, 2, 3]))
    reader.write(bytes([4, 5, 6]))
    header = reader.finish()
    assert header["custom"] == "custom_value"
    assert reader.state is StreamState.FINISHED

    reader = DeserializeJwsWriter(token, lambda h: RsaVerifier(rsa_key.public_key(), "PS256"))
    reader.write(bytes([0, 1, 2, 3]))
    reader.write(bytes([4, 5, 7]))
    with pytest.raises(VerificationError):
        reader.finish()
    assert reader.state is StreamState.FAILED


def test_round_trip_returns_custom_plus_protocol_fields():
    custom = {"custom": "custom_value", "n": 3, "nested": {"a": [1, None]}}
    token = _hs256_token(custom)
    header = deserialize(token, PAYLOAD, _hs256_verifier())
    assert header == {**custom, "alg": "HS256", "b64": False}
    assert list(header) == ["custom", "n", "nested", "alg", "b64"]


def test_deserialize_accepts_bytes_token_and_stream_payload():
    token = _hs256_token()
    header = deserialize(token.encode("ascii"), io.BytesIO(PAYLOAD), _hs256_verifier(), chunk_size=1)
    assert header["alg"] == "HS256"


def test_tampered_payload_fails():
    token = _hs256_token()
    with pytest.raises(VerificationError):
        deserialize(token, bytes([0, 1, 2, 3, 4, 5, 7]), _hs256_verifier())
    with pytest.raises(VerificationError):
        deserialize(token, PAYLOAD[:-1], _hs256_verifier())
    with pytest.raises(VerificationError):
        deserialize(token, PAYLOAD + b"\x00", _hs256_verifier())


def test_tampered_segments_never_verify():
    token = _hs256_token({"custom": "custom_value"})
    header_segment, _, signature_segment = token.split(".")
    for i in range(len(signature_segment)):
        bad = header_segment + ".." + flip(signature_segment, i)
        with pytest.raises((VerificationError, DecodeError)):
            deserialize(bad, PAYLOAD, _hs256_verifier())
    for i in range(len(header_segment)):
        bad = flip(header_segment, i) + ".." + signature_segment
        with pytest.raises((VerificationError, DecodeError, ParseError)):
            deserialize(bad, PAYLOAD, _hs256_verifier())


def test_header_bytes_are_fed_as_received():
    token = _hs256_token({"z": 1, "a": 2})
    verifier = EchoVerifier()
    DeserializeJwsWriter(token, lambda h: verifier)
    assert bytes(verifier.fed) == token.split(".")[0].encode("ascii") + b"."


def test_non_canonical_header_json_still_verifies():
    # whitespace and key order a re-serialization would change
    raw = b'{ "b64" : false,\n "alg": "HS256", "x": 1 }'
    header_segment = encode_segment(raw)
    mac = HmacSigner(KEY, hashes.SHA256())
    mac.update(header_segment.encode("ascii") + b"." + PAYLOAD)
    token = header_segment + ".." + encode_segment(mac.finalize_sign())
    assert deserialize(token, PAYLOAD, _hs256_verifier()) == {"b64": False, "alg": "HS256", "x": 1}


def test_resolver_selects_by_header():
    token = _hs256_token({"signer": "this"})
    calls = []

    def resolver(h):
        calls.append(dict(h))
        return _hs256_verifier() if h.get("signer") == "this" else None

    header = deserialize_selector(token, PAYLOAD, resolver)
    assert header["signer"] == "this"
    assert calls == [header]


def test_resolver_rejection_never_compares_signature():
    token = _hs256_token()
    with pytest.raises(UnsupportedAlgorithmError):
        deserialize_selector(token, PAYLOAD, lambda h: None)


def test_resolver_lookup_error_is_unsupported():
    token = _hs256_token({"kid": "missing"})
    keys = {}
    with pytest.raises(UnsupportedAlgorithmError):
        deserialize_selector(token, PAYLOAD, lambda h: HmacVerifier(keys[h["kid"]], hashes.SHA256()))


@pytest.mark.parametrize(
    "token",
    ["", "abc", "a.b", "a..b..c", "eyJ9.AAAA.c2ln"],
)
def test_malformed_tokens(token):
    with pytest.raises(FormatError):
        DeserializeJwsWriter(token, lambda h: EchoVerifier())


def test_attached_payload_is_format_error():
    token = _hs256_token()
    header_segment, _, signature_segment = token.split(".")
    attached = header_segment + "." + encode_segment(PAYLOAD) + "." + signature_segment
    with pytest.raises(FormatError):
        DeserializeJwsWriter(attached, lambda h: _hs256_verifier())


def test_bad_header_segment():
    with pytest.raises(DecodeError):
        DeserializeJwsWriter("e30=..c2ln", lambda h: EchoVerifier())
    with pytest.raises(ParseError):
        DeserializeJwsWriter(encode_segment(b"[1]") + "..c2ln", lambda h: EchoVerifier())
    with pytest.raises(ParseError):
        DeserializeJwsWriter(encode_segment(b"{}") + "..c2ln", lambda h: EchoVerifier())
    with pytest.raises(ParseError):
        DeserializeJwsWriter(
            encode_segment(b'{"alg":"HS256","b64":"no"}') + "..c2ln", lambda h: EchoVerifier()
        )


def test_bad_signature_segment_is_decode_error_at_finish():
    token = _hs256_token()
    reader = DeserializeJwsWriter(token.split(".")[0] + "..c2ln=", lambda h: _hs256_verifier())
    reader.write(PAYLOAD)
    with pytest.raises(DecodeError):
        reader.finish()
    assert reader.state is StreamState.FAILED


def test_write_after_finish_rejected():
    token = _hs256_token()
    reader = DeserializeJwsWriter(token, lambda h: _hs256_verifier())
    reader.write(PAYLOAD)
    header = reader.finish()
    with pytest.raises(WriteAfterFinishError):
        reader.write(b"x")
    with pytest.raises(WriteAfterFinishError):
        reader.finish()
    assert reader.unverified_header == header


def test_failed_reader_stays_failed():
    token = _hs256_token()
    reader = DeserializeJwsWriter(token, lambda h: _hs256_verifier())
    reader.write(b"wrong")
    with pytest.raises(VerificationError):
        reader.finish()
    with pytest.raises(WriteAfterFinishError):
        reader.finish()
    with pytest.raises(WriteAfterFinishError):
        reader.write(PAYLOAD)


def test_verifier_error_is_wrapped():
    class Exploding(EchoVerifier):
        def finalize_verify(self, signature):
            raise RuntimeError("primitive failure")

    reader = DeserializeJwsWriter(_hs256_token(), lambda h: Exploding())
    with pytest.raises(VerificationError) as exc:
        reader.finish()
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_echo_round_trip_with_dummy_capabilities():
    token = serialize("test_algorithm", {"custom": "custom_value"}, PAYLOAD, EchoSigner())
    header = deserialize(token, PAYLOAD, EchoVerifier())
    assert header["custom"] == "custom_value"


def test_legacy_encoded_payload_token():
    verifier = EchoVerifier()
    reader = DeserializeJwsWriter(LEGACY_TOKEN, lambda h: verifier)
    reader.write(bytes([0, 1, 2, 3]))
    reader.write(bytes([4, 5, 6]))
    header = reader.finish()
    assert header == {"alg": "test_algorithm", "custom": "custom_value"}
    assert bytes(verifier.fed).endswith(b".AAECAwQFBg")

    with pytest.raises(VerificationError):
        deserialize(LEGACY_TOKEN, bytes([0, 1, 2, 3, 4, 5, 7]), EchoVerifier())


def test_explicit_b64_true_uses_encoded_payload():
    header_segment = encode_segment(serialize_header({"alg": "HS256", "b64": True}))
    mac = HmacSigner(KEY, hashes.SHA256())
    mac.update(header_segment.encode("ascii") + b"." + encode_segment(PAYLOAD).encode("ascii"))
    token = header_segment + ".." + encode_segment(mac.finalize_sign())
    assert deserialize(token, PAYLOAD, _hs256_verifier())["b64"] is True


def test_verify_detached_convenience():
    token = _hs256_token({"a": 1})
    assert _hs256_verifier().verify_detached(token, PAYLOAD)["a"] == 1
