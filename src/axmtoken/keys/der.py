"""Minimal DER and PEM helpers for wrapping SEC1 keys in PKCS#8.

Only the handful of encodings needed to build a PKCS#8 ``PrivateKeyInfo``
around a SEC1 ``ECPrivateKey`` live here::

    PrivateKeyInfo ::= SEQUENCE {
        version              INTEGER (0),
        privateKeyAlgorithm  SEQUENCE { id-ecPublicKey, secp256r1 },
        privateKey           OCTET STRING (the SEC1 DER)
    }

This is not an ASN.1 parser. Decoding is left to :mod:`cryptography`.
"""

from __future__ import annotations

import base64
import re

TAG_INTEGER = 0x02
TAG_OCTET_STRING = 0x04
TAG_SEQUENCE = 0x30

# OID 1.2.840.10045.2.1 (id-ecPublicKey)
OID_EC_PUBLIC_KEY = bytes([0x06, 0x07, 0x2A, 0x86, 0x48, 0xCE, 0x3D, 0x02, 0x01])
# OID 1.2.840.10045.3.1.7 (secp256r1 / prime256v1)
OID_SECP256R1 = bytes([0x06, 0x08, 0x2A, 0x86, 0x48, 0xCE, 0x3D, 0x03, 0x01, 0x07])

P256_ALGORITHM_IDENTIFIER = bytes([TAG_SEQUENCE, 0x13]) + OID_EC_PUBLIC_KEY + OID_SECP256R1
PKCS8_VERSION = bytes([TAG_INTEGER, 0x01, 0x00])

_PEM_BEGIN = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----")


def encode_length(length: int) -> bytes:
    """Encode a DER length field.

    Lengths below 128 use the single-byte short form. Longer lengths use the
    long form: ``0x80 | n`` followed by ``n`` big-endian bytes, with ``n`` as
    small as possible (``0x81`` up to 255, ``0x82`` up to 65535, ``0x83``
    up to 16777215, and so on).

    Raises:
        ValueError: If *length* is negative.

    Example::

        >>> encode_length(127).hex()
        '7f'
        >>> encode_length(256).hex()
        '820100'
    """
    if length < 0:
        raise ValueError(f"DER length cannot be negative: {length}")
    if length < 0x80:
        return bytes([length])
    body = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def encode_tlv(tag: int, content: bytes) -> bytes:
    """Encode one tag-length-value element."""
    return bytes([tag]) + encode_length(len(content)) + content


def wrap_sec1_in_pkcs8(sec1_der: bytes) -> bytes:
    """Wrap a SEC1 ``ECPrivateKey`` DER blob in a P-256 PKCS#8 structure."""
    body = PKCS8_VERSION + P256_ALGORITHM_IDENTIFIER + encode_tlv(TAG_OCTET_STRING, sec1_der)
    return encode_tlv(TAG_SEQUENCE, body)


def pem_label(text: str) -> str | None:
    """Return the label of the first ``-----BEGIN <label>-----`` marker, if any."""
    match = _PEM_BEGIN.search(text)
    return match.group(1).strip() if match else None


def pem_to_der(text: str, label: str) -> bytes:
    """Strip the *label* markers and whitespace from *text* and base64-decode the rest.

    Raises:
        ValueError: If the enclosed payload is not valid base64.
    """
    body = (
        text.replace(f"-----BEGIN {label}-----", "")
        .replace(f"-----END {label}-----", "")
    )
    body = re.sub(r"\s", "", body)
    if not body:
        raise ValueError(f"empty {label} block")
    return base64.b64decode(body, validate=True)
