"""Inspect a compact JWT without trusting it.

Used by ``axmtoken decode`` to show what was sent to Apple: the header and
claims are base64url-decoded and pretty-printed, and the well-known fields
are pulled out. When a public key is supplied the ES256 signature is
checked as well; expiry and audience are deliberately not validated.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from axmtoken.assertion.builder import ALGORITHM
from axmtoken.assertion.encoding import b64url_decode
from axmtoken.exceptions import AssertionDecodeError
from axmtoken.models import DecodedAssertion

logger = logging.getLogger(__name__)


def _segment_json(segment: str, name: str) -> dict[str, Any]:
    try:
        data = json.loads(b64url_decode(segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise AssertionDecodeError(f"JWT {name} is not base64url-encoded JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AssertionDecodeError(f"JWT {name} is not a JSON object")
    return data


def _str(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _int(data: dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def verify_signature(token: str, public_key: ec.EllipticCurvePublicKey) -> bool:
    """Return whether *token*'s ES256 signature verifies under *public_key*."""
    try:
        jwt.decode(
            token,
            public_key,
            algorithms=[ALGORITHM],
            options={
                "verify_exp": False,
                "verify_aud": False,
                "verify_iat": False,
                "verify_nbf": False,
            },
        )
    except jwt.PyJWTError as exc:
        logger.debug("Signature check failed: %s", exc)
        return False
    return True


def decode_assertion(
    token: str,
    public_key: Optional[ec.EllipticCurvePublicKey] = None,
) -> DecodedAssertion:
    """Split and decode *token*.

    Raises:
        AssertionDecodeError: If *token* does not have three segments or
            its header or claims are not base64url JSON objects.
    """
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise AssertionDecodeError(f"Expected 3 JWT segments, got {len(parts)}")

    header = _segment_json(parts[0], "header")
    payload = _segment_json(parts[1], "payload")

    return DecodedAssertion(
        header=json.dumps(header, indent=2, sort_keys=True),
        payload=json.dumps(payload, indent=2, sort_keys=True),
        signature=parts[2],
        algorithm=_str(header, "alg"),
        key_id=_str(header, "kid"),
        issuer=_str(payload, "iss"),
        subject=_str(payload, "sub"),
        audience=_str(payload, "aud"),
        issued_at=_int(payload, "iat"),
        expires_at=_int(payload, "exp"),
        jwt_id=_str(payload, "jti"),
        signature_valid=(
            verify_signature(token.strip(), public_key) if public_key is not None else None
        ),
    )
