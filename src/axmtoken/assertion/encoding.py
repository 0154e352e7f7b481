"""Base64url without padding, as used by every JWT segment (:rfc:`7515` section 2)."""

from __future__ import annotations

import base64


def b64url_encode(data: bytes) -> str:
    """Encode *data* as unpadded base64url text."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Decode unpadded (or padded) base64url text.

    Raises:
        ValueError: If *text* contains characters outside the base64url
            alphabet or has an impossible length.
    """
    stripped = text.rstrip("=")
    if len(stripped) % 4 == 1:
        raise ValueError(f"invalid base64url length {len(stripped)}")
    padded = stripped + "=" * (-len(stripped) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)
