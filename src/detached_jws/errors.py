from __future__ import annotations


class JwsError(Exception):
    """Base class for every failure raised by detached_jws."""


class FormatError(JwsError):
    """Token is not three dot-separated segments with an empty payload segment."""


class DecodeError(JwsError):
    """A segment is not valid unpadded base64url."""


class ParseError(JwsError):
    """Decoded header bytes are not a usable JSON object."""


class UnsupportedAlgorithmError(JwsError):
    """No signing or verification capability is available for the header."""


class SigningError(JwsError):
    pass


class VerificationError(JwsError):
    pass


class WriteAfterFinishError(JwsError):
    """write() or finish() called on a writer that is no longer open."""
