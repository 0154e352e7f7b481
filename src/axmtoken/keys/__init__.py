"""Private-key handling: DER helpers and the multi-format key normalizer.

- :class:`KeyMaterialNormalizer` -- bytes in PKCS#8 PEM, SEC1 PEM, DER or
  raw-scalar form to a P-256 signing key.
- :func:`encode_length` / :func:`wrap_sec1_in_pkcs8` -- the DER pieces used
  to turn a SEC1 key into PKCS#8.
"""

from axmtoken.keys.der import encode_length, wrap_sec1_in_pkcs8
from axmtoken.keys.normalizer import (
    KeyMaterialNormalizer,
    NormalizedKey,
    SigningKey,
)

__all__ = [
    "KeyMaterialNormalizer",
    "NormalizedKey",
    "SigningKey",
    "encode_length",
    "wrap_sec1_in_pkcs8",
]
