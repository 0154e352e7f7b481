"""JWT client assertions: building, signing and inspecting.

- :class:`JWTAssertionBuilder` -- ES256 assertion for the JWT-bearer grant.
- :func:`decode_assertion` -- split and pretty-print a compact JWT.
- :func:`b64url_encode` / :func:`b64url_decode` -- unpadded base64url.
"""

from axmtoken.assertion.builder import (
    ALGORITHM,
    MAX_ASSERTION_LIFETIME,
    JWTAssertionBuilder,
)
from axmtoken.assertion.decoder import decode_assertion, verify_signature
from axmtoken.assertion.encoding import b64url_decode, b64url_encode

__all__ = [
    "ALGORITHM",
    "MAX_ASSERTION_LIFETIME",
    "JWTAssertionBuilder",
    "b64url_decode",
    "b64url_encode",
    "decode_assertion",
    "verify_signature",
]
