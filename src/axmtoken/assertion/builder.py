"""Build and sign the JWT client assertion presented to Apple's token endpoint.

The assertion is an ES256 compact JWS::

    header  {"alg": "ES256", "kid": <key id>, "typ": "JWT"}
    claims  {"iss": <client id>, "sub": <client id>, "aud": <token audience>,
             "iat": now, "exp": now + 180 days, "jti": <uuid4>}

Apple accepts assertions valid for at most 180 days, so every build uses
that maximum. Encoding and the raw 64-byte ``r || s`` signature are
delegated to PyJWT; the builder itself performs no I/O.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from axmtoken.exceptions import SigningError
from axmtoken.keys import SigningKey
from axmtoken.models import DEFAULT_AUDIENCE

logger = logging.getLogger(__name__)

ALGORITHM = "ES256"
MAX_ASSERTION_LIFETIME = timedelta(days=180)


class JWTAssertionBuilder:
    """Produce signed client assertions.

    Args:
        lifetime: Validity window written into ``exp``. Defaults to the
            180-day maximum Apple accepts.
    """

    def __init__(self, lifetime: timedelta = MAX_ASSERTION_LIFETIME) -> None:
        self._lifetime = lifetime

    def claims(
        self,
        subject_id: str,
        audience: str = DEFAULT_AUDIENCE,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Return the claim set for one assertion, with a fresh ``jti``."""
        issued_at = int((now or datetime.now(timezone.utc)).timestamp())
        return {
            "iss": subject_id,
            "sub": subject_id,
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + int(self._lifetime.total_seconds()),
            "jti": str(uuid.uuid4()),
        }

    def build(
        self,
        subject_id: str,
        key_id: str,
        signing_key: SigningKey,
        audience: str = DEFAULT_AUDIENCE,
        now: Optional[datetime] = None,
    ) -> str:
        """Return ``header.claims.signature`` signed with *signing_key*.

        Args:
            subject_id: The OAuth client id, used as both ``iss`` and ``sub``.
            key_id: Written to the header ``kid``.
            signing_key: A P-256 private key from
                :class:`~axmtoken.keys.KeyMaterialNormalizer`.
            audience: The ``aud`` claim.
            now: Issue time; defaults to the current UTC time.

        Raises:
            SigningError: If the key or claims are rejected by the signer.
        """
        claims = self.claims(subject_id, audience, now)
        try:
            token = jwt.encode(
                claims,
                signing_key,
                algorithm=ALGORITHM,
                headers={"kid": key_id},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise SigningError(f"Could not sign assertion: {exc}") from exc
        logger.debug("Built assertion jti=%s for %s", claims["jti"], subject_id)
        return token
